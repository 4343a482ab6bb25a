"""
Dataclasses describing the outcome of conversion requests and batch sessions.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ConversionState(Enum):
    """Terminal state of a single conversion request."""

    DONE = "done"
    CACHED = "cached"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ConversionOutcome:
    """Result of providing one source file."""

    source: str
    state: ConversionState
    artifact: Path | None = None
    error: Exception | None = None


@dataclass
class ConversionStats:
    """Tracks statistics for a conversion session."""

    converted: int = 0
    cached: int = 0
    failed: int = 0
    cancelled: int = 0
    total_size_written: int = 0
    duplicates_skipped: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.converted + self.cached + self.failed + self.cancelled

    def record(self, outcome: ConversionOutcome) -> None:
        """Counts an outcome into the matching bucket."""
        if outcome.state is ConversionState.DONE:
            self.converted += 1
            if outcome.artifact and outcome.artifact.exists():
                self.total_size_written += outcome.artifact.stat().st_size
        elif outcome.state is ConversionState.CACHED:
            self.cached += 1
        elif outcome.state is ConversionState.CANCELLED:
            self.cancelled += 1
        else:
            self.failed += 1
            if outcome.error is not None:
                self.errors[outcome.source] = str(outcome.error)
