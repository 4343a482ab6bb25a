"""
Structured event log of conversion sessions.

Every event is a JSON object on its own line of ``penaudio_<timestamp>.jsonl``
(when a log directory is given) and optionally a plain log record on the
``penaudio.events`` logger.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.markup import escape


class StructuredLogger:
    """
    Writes named events with keyword context.

    Usage:
        events = StructuredLogger("penaudio.events", log_dir=Path("logs"))
        events.emit(logging.INFO, "conversion_completed",
                    source="/music/track.mp3", duration_s=3.2)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        self._logger = logging.getLogger(name)
        self.enable_console = enable_console
        self._json_file = None
        if enable_json and log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self._json_file = open(  # noqa: SIM115
                log_dir / f"penaudio_{stamp}.jsonl", "a", encoding="utf-8"
            )

        # Merged into every JSON entry
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
        }

    @property
    def json_path(self) -> Path | None:
        return Path(self._json_file.name) if self._json_file else None

    def set_session_context(self, **kwargs) -> None:
        """Adds fields that appear in every following JSON entry."""
        self._session_context.update(kwargs)

    def emit(self, level: int, event: str, **context) -> None:
        if self.enable_console and self._logger.isEnabledFor(level):
            fields = " ".join(f"{key}={value}" for key, value in context.items())
            self._logger.log(level, escape(f"{event}: {fields}".rstrip()))
        if self._json_file is None or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": logging.getLevelName(level),
            "event": event,
            **self._session_context,
            **context,
        }
        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def close(self) -> None:
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class ConversionLogger:
    """Per-file conversion events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def conversion_started(self, source: str, key: str, source_format: str):
        self.logger.emit(
            logging.DEBUG, "conversion_started", source=source, key=key, format=source_format
        )

    def cache_hit(self, source: str, artifact: str):
        self.logger.emit(logging.DEBUG, "cache_hit", source=source, artifact=artifact)

    def stage_completed(self, source: str, executable: str, duration_s: float):
        self.logger.emit(
            logging.DEBUG,
            "stage_completed",
            source=source,
            executable=executable,
            duration_s=round(duration_s, 3),
        )

    def conversion_completed(
        self, source: str, artifact: str, size_bytes: int, duration_s: float
    ):
        self.logger.emit(
            logging.INFO,
            "conversion_completed",
            source=source,
            artifact=artifact,
            size_bytes=size_bytes,
            duration_s=round(duration_s, 2),
        )

    def conversion_failed(self, source: str, error: str, error_type: str):
        self.logger.emit(
            logging.ERROR,
            "conversion_failed",
            source=source,
            error=error,
            error_type=error_type,
        )

    def conversion_cancelled(self, source: str):
        self.logger.emit(logging.WARNING, "conversion_cancelled", source=source)


class SessionLogger:
    """Batch session events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def session_started(self, total_sources: int, max_workers: int, force: bool):
        self.logger.emit(
            logging.INFO,
            "session_started",
            total_sources=total_sources,
            max_workers=max_workers,
            force=force,
        )

    def session_completed(
        self,
        duration_s: float,
        converted: int,
        cached: int,
        failed: int,
        cancelled: int,
    ):
        self.logger.emit(
            logging.INFO,
            "session_completed",
            duration_s=round(duration_s, 2),
            converted=converted,
            cached=cached,
            failed=failed,
            cancelled=cancelled,
        )


def create_structured_logger(
    log_dir: Path | None = None,
    enable_json: bool = False,
    enable_console: bool = False,
) -> tuple[StructuredLogger, ConversionLogger, SessionLogger]:
    """
    Builds the event log and its two facades.

    Returns:
        Tuple of (base_logger, conversion_logger, session_logger)
    """
    base = StructuredLogger(
        "penaudio.events",
        log_dir=log_dir,
        enable_json=enable_json,
        enable_console=enable_console,
    )
    return base, ConversionLogger(base), SessionLogger(base)
