"""
Immutable reference to a source audio file.
"""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SourceReference:
    """An absolute source path plus the format tag taken from its extension."""

    path: str
    format: str

    @classmethod
    def from_path(cls, source: str | os.PathLike) -> "SourceReference":
        """Builds a reference from any path, making it absolute first."""
        absolute = os.path.abspath(os.path.expanduser(os.fspath(source)))
        return cls(path=absolute, format=Path(absolute).suffix.lower().lstrip("."))

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def __str__(self) -> str:
        return self.path
