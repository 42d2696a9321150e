"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from launchsync.exceptions import ConfigurationError
from launchsync.models.config import LauncherConfig

log = logging.getLogger(__name__)

# Keys whose empty value means "defer to the manifest"
TRI_STATE_KEYS = ("ignore_update_errors", "lingering_update_screen", "accept_downgrade")
OPTIONAL_STR_KEYS = (
    "cache_directory",
    "target_os",
    "error_title",
    "error_header",
    "error_body",
)


class ConfigManager:
    """Handles all operations related to the launcher's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> LauncherConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error as long as the CLI options supply
        everything required (at minimum the manifest URI).

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated LauncherConfig object.

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
            try:
                config_from_file = self._get_config_as_dict()
            except ValueError as e:
                raise ConfigurationError(f"Invalid configuration value: {e}") from e
        else:
            log.debug(f"No configuration file at '{self.config_file_path}'.")

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        if not config_from_file.get("manifest_uri"):
            raise ConfigurationError(
                "No manifest URI configured. Pass --uri or run "
                "'launchsync init <MANIFEST_URI>' first."
            )

        try:
            config_dir = self.config_file_path.parent
            return LauncherConfig(**config_from_file, config_path=str(config_dir))
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

        defaults = LauncherConfig.model_construct()
        for key in sorted(LauncherConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            config["DEFAULT"][key] = self._to_ini_value(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_raw_settings(self) -> dict[str, Any]:
        """Returns the file's settings without validation, for display."""
        if not self.config_file_path.is_file():
            return {}
        self._parser.read(self.config_file_path, encoding="utf-8")
        return self._get_config_as_dict()

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if hasattr(value, "value"):
            return str(value.value)
        return str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        settings: dict[str, Any] = {
            "manifest_uri": section.get("manifest_uri", ""),
            "ignore_ssl_validation": section.getboolean(
                "ignore_ssl_validation", False
            ),
            "max_workers": section.getint("max_workers", 4),
            "max_attempts": section.getint("max_attempts", 3),
            "retry_base_delay": section.getfloat("retry_base_delay", 1.5),
            "verify_files": section.getboolean("verify_files", True),
            "event_log": section.getboolean("event_log", False),
        }
        for key in TRI_STATE_KEYS:
            raw = section.get(key, "").strip()
            settings[key] = section.getboolean(key) if raw else None
        for key in OPTIONAL_STR_KEYS:
            raw = section.get(key, "").strip()
            settings[key] = raw or None
        return settings

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = LauncherConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(LauncherConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = self._to_ini_value(getattr(defaults, key, None))
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
