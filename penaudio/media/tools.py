"""
Resolves the codec executables configured for the converter.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from penaudio.models.config import ConverterConfig

log = logging.getLogger(__name__)


def find_tool(name: str, tools_dir: str | Path | None = None) -> str | None:
    """
    Finds a tool binary. An explicit tools directory wins over PATH.
    Returns the full path, or None if the tool cannot be located.
    """
    if tools_dir:
        base = Path(tools_dir).expanduser()
        for candidate in (base / name, *base.glob(f"*/{name}")):
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
    return shutil.which(name)


@dataclass(frozen=True)
class ToolPaths:
    """Executables of the decoder and encoder tool chain."""

    mpg123: str
    oggenc: str
    oggdec: str

    @classmethod
    def from_config(cls, config: ConverterConfig) -> "ToolPaths":
        """
        Resolves each configured tool name. Unresolvable names are kept as-is;
        starting them later raises ToolNotFoundError with the name in it.
        """
        resolved = {}
        for tool in ("mpg123", "oggenc", "oggdec"):
            name = getattr(config, tool)
            path = find_tool(name, config.tools_dir)
            if path is None:
                log.debug(f"Tool '{name}' not found in tools dir or PATH.")
            resolved[tool] = path or name
        return cls(**resolved)
