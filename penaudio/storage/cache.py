"""
The persistent cache of converted artifacts and the derivation of its keys.

Artifacts live at ``<cache_dir>/<key>.ogg``. An existing artifact is trusted
without any content check; nothing in this module ever deletes one.
"""

import hashlib
import logging
from pathlib import Path

from penaudio.exceptions import CacheIOError
from penaudio.media.stages import TARGET_EXTENSION, TARGET_RESAMPLE_RATE
from penaudio.models.source import SourceReference

log = logging.getLogger(__name__)

# Bump the version whenever encoder arguments change, so old artifacts are
# no longer matched.
TARGET_PROFILE = f"ogg-vorbis/{TARGET_RESAMPLE_RATE}Hz/v1"


class CacheKeyDeriver:
    """
    Maps a source to a fixed-length hex key.

    In ``path`` mode the key depends only on the case-folded absolute path,
    so an edited file keeps its stale artifact until it is renamed or a
    reconversion is forced. ``content`` mode hashes the file bytes instead.
    """

    def __init__(self, mode: str = "path", profile: str = TARGET_PROFILE):
        if mode not in ("path", "content"):
            raise ValueError(f"Unknown cache key mode: {mode}")
        self.mode = mode
        self.profile = profile

    def derive_key(self, source: SourceReference) -> str:
        """
        Returns the 64 character SHA-256 key for a source.

        Raises:
            CacheIOError: In content mode, if the source cannot be read.
        """
        hasher = hashlib.sha256(self.profile.encode("utf-8") + b"\n")
        if self.mode == "content":
            try:
                with open(source.path, "rb") as f:
                    while chunk := f.read(65536):
                        hasher.update(chunk)
            except OSError as e:
                raise CacheIOError(f"Cannot read source '{source.path}': {e}") from e
        else:
            hasher.update(self.normalize(source.path).encode("utf-8"))
        return hasher.hexdigest()

    @staticmethod
    def normalize(path: str) -> str:
        """Case-insensitive identity of a path string."""
        return path.casefold()


class ArtifactCache:
    """Locates converted artifacts inside the cache directory."""

    def __init__(self, cache_dir: str | Path, key_deriver: CacheKeyDeriver | None = None):
        """
        Args:
            cache_dir: Directory holding the artifacts. It is only created
                when the first artifact is about to be written.
            key_deriver: Key policy; defaults to path identity.
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.key_deriver = key_deriver or CacheKeyDeriver()

    def derive_key(self, source: SourceReference) -> str:
        return self.key_deriver.derive_key(source)

    def artifact_path(self, key: str) -> Path:
        """Path of the artifact for a key, whether or not it exists yet."""
        return self.cache_dir / f"{key}{TARGET_EXTENSION}"

    def lookup(self, key: str) -> Path | None:
        """Returns the artifact path if a committed artifact exists."""
        path = self.artifact_path(key)
        return path if path.is_file() else None

    def ensure_directory(self) -> None:
        """
        Creates the cache directory if needed.

        Raises:
            CacheIOError: If the directory cannot be created.
        """
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(
                f"Cannot create cache directory '{self.cache_dir}': {e}"
            ) from e

    def stats(self) -> dict[str, int]:
        """Counts committed artifacts and their total size."""
        count = 0
        size = 0
        if self.cache_dir.is_dir():
            for artifact in self.cache_dir.glob(f"*{TARGET_EXTENSION}"):
                try:
                    size += artifact.stat().st_size
                    count += 1
                except OSError as e:
                    log.debug(f"Could not stat {artifact.name}: {e}")
        return {"artifacts": count, "total_size": size}
