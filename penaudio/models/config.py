"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

CACHE_KEY_MODES = ("path", "content")

# Executable names of the codec tool chain, per host family
TOOL_NAMES = {
    "nt": {"mpg123": "mpg123.exe", "oggenc": "oggenc2.exe", "oggdec": "oggdec.exe"},
    "posix": {"mpg123": "mpg123", "oggenc": "oggenc", "oggdec": "oggdec"},
}


def default_tool_name(tool: str) -> str:
    """Returns the conventional executable name of a codec tool on this host."""
    return TOOL_NAMES.get(os.name, TOOL_NAMES["posix"])[tool]


def default_cache_dir() -> str:
    if os.name == "nt":
        base_dir = Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local"))
    else:
        base_dir = Path(os.getenv("XDG_CACHE_HOME", "~/.cache"))
    return str(base_dir.expanduser() / "penaudio" / "audio")


class ConverterConfig(BaseModel):
    """A validated configuration model for the converter."""

    # Cache
    cache_dir: str = Field(default_factory=default_cache_dir)
    cache_key_mode: str = "path"
    always_convert: bool = False
    verify_output: bool = True

    # Codec tools
    mpg123: str = Field(default_factory=lambda: default_tool_name("mpg123"))
    oggenc: str = Field(default_factory=lambda: default_tool_name("oggenc"))
    oggdec: str = Field(default_factory=lambda: default_tool_name("oggdec"))
    tools_dir: str = ""
    tool_timeout: float = 600.0

    # Concurrency
    max_workers: int = 4

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("cache_key_mode")
    @classmethod
    def validate_cache_key_mode(cls, v: str) -> str:
        """Ensures the cache key mode is one of the supported identities."""
        v = v.lower()
        if v not in CACHE_KEY_MODES:
            raise ValueError(
                f"Cache key mode must be one of {', '.join(CACHE_KEY_MODES)}."
            )
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("tool_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Tool timeout cannot be negative (use 0 to disable).")
        return v

    @field_validator("mpg123", "oggenc", "oggdec")
    @classmethod
    def validate_tool_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Tool executable names cannot be empty.")
        return v

    @model_validator(mode="after")
    def validate_paths(self) -> "ConverterConfig":
        """Checks that configured directories are usable paths."""
        if not self.cache_dir:
            raise ValueError("Cache directory cannot be empty.")
        if self.tools_dir and Path(self.tools_dir).expanduser().is_file():
            raise ValueError(f"Tools directory '{self.tools_dir}' is a file.")
        return self

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir).expanduser()

    @property
    def timeout_or_none(self) -> float | None:
        """The tool timeout, with 0 meaning no timeout."""
        return self.tool_timeout or None

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
