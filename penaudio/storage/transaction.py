"""
Transactional file writes: writers populate a temporary path, and only an
explicit commit moves it onto the destination.

Commit is a single ``os.replace``, so readers of the destination see either
the previous file or the complete new one, never a partial write. A
transaction that is released without commit deletes its temporary file and
leaves the destination untouched.
"""

import logging
import os
import uuid
from pathlib import Path

log = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def remove_quietly(path: Path) -> bool:
    """Removes a file if it exists. Failures are logged, never raised."""
    try:
        path.unlink()
        log.debug(f"Removed {path}")
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        log.warning(f"Failed to remove {path}: {e}")
        return False


def _fsync_file(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _fsync_directory(dir_path: Path) -> None:
    """Best-effort fsync on a directory so a rename survives power loss."""
    try:
        fd = os.open(dir_path, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except (OSError, AttributeError):
        # O_DIRECTORY is not available on every platform
        pass


class FileTransaction:
    """
    One in-flight write to a destination path.

    Usage:
        with FileTransaction(destination) as txn:
            produce_file(txn.temp_path)
            txn.commit()
    """

    def __init__(self, destination: str | Path):
        self.destination = Path(destination)
        # Unique per transaction, so concurrent writers never share a temp file
        self.temp_path = self.destination.with_name(
            f"{self.destination.name}.{uuid.uuid4().hex[:12]}{TEMP_SUFFIX}"
        )
        self.committed = False

    def commit(self) -> None:
        """
        Atomically replaces the destination with the temporary file.

        Raises:
            RuntimeError: If the transaction was already committed.
            FileNotFoundError: If nothing was written to the temporary path.
        """
        if self.committed:
            raise RuntimeError(f"Transaction for {self.destination} already committed.")
        if not self.temp_path.is_file():
            raise FileNotFoundError(
                f"Nothing to commit: {self.temp_path} was never written."
            )
        _fsync_file(self.temp_path)
        os.replace(self.temp_path, self.destination)
        self.committed = True
        _fsync_directory(self.destination.parent)
        log.debug(f"Committed {self.destination}")

    def release(self) -> None:
        """Discards the temporary file unless the transaction was committed."""
        if not self.committed:
            remove_quietly(self.temp_path)

    def __enter__(self) -> "FileTransaction":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def cleanup_orphan_temp_files(directory: str | Path) -> int:
    """
    Removes temporary and intermediate files left behind by crashed
    processes. Only call this when no conversion is running against the
    directory.

    Returns:
        Number of files removed.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return 0

    removed = 0
    for pattern in (f"*{TEMP_SUFFIX}", f"*{TEMP_SUFFIX}.wav"):
        for temp_file in directory.glob(pattern):
            if remove_quietly(temp_file):
                removed += 1
    return removed
