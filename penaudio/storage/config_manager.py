"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from penaudio.exceptions import ConfigurationError
from penaudio.models.config import ConverterConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ConverterConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: built-in defaults are used.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated ConverterConfig object.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Error parsing configuration file: {e}"
                ) from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(
                f"No configuration file at '{self.config_file_path}', using defaults."
            )

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return ConverterConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = ConverterConfig()
        for key in sorted(ConverterConfig.get_ini_keys()):
            # Use provided settings first, then fall back to model defaults
            value = settings.get(key, getattr(defaults, key, None))
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            elif value is not None:
                config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {}
        for key in ("cache_dir", "cache_key_mode", "mpg123", "oggenc", "oggdec", "tools_dir"):
            if key in section:
                values[key] = section.get(key)
        for key in ("always_convert", "verify_output"):
            if key in section:
                try:
                    values[key] = section.getboolean(key)
                except ValueError as e:
                    raise ConfigurationError(f"Invalid value for '{key}': {e}") from e
        if "max_workers" in section:
            try:
                values["max_workers"] = section.getint("max_workers")
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for 'max_workers': {e}") from e
        if "tool_timeout" in section:
            try:
                values["tool_timeout"] = section.getfloat("tool_timeout")
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for 'tool_timeout': {e}") from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = ConverterConfig()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(ConverterConfig.get_ini_keys()):
            if key not in config_section:
                default_value = getattr(defaults, key)
                if isinstance(default_value, bool):
                    config_section[key] = "true" if default_value else "false"
                else:
                    config_section[key] = str(default_value)

                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
