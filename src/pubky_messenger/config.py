"""
Pubky Messenger - Configuration Management

This module handles loading, merging, and managing configuration from
TOML files and environment variables. Supports default values and
runtime configuration updates.
"""

import copy
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# Python 3.11+ has tomllib built-in, older versions need tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .constants import (
    CONFIG_FILENAME,
    DEFAULT_DATA_DIR,
    DEFAULT_HOMESERVER,
    FEATURE_NOTIFICATIONS,
    LOGS_DIR,
    SESSION_FILENAME,
    STORE_REQUEST_TIMEOUT,
)
from .errors import ConfigError, ErrorCode

ENV_PREFIX = "PUBKY_MESSENGER"

# Default configuration dictionary
DEFAULT_CONFIG: Dict[str, Any] = {
    "store": {
        "homeserver": DEFAULT_HOMESERVER,
        "timeout": STORE_REQUEST_TIMEOUT,
    },
    "messaging": {
        "notifications": FEATURE_NOTIFICATIONS,
    },
    "vault": {
        "session_file": f"{DEFAULT_DATA_DIR}/{SESSION_FILENAME}",
        "remember_session": True,
    },
    "logging": {
        "level": "INFO",
        "file_logging": False,
        "console_logging": True,
        "log_dir": f"{DEFAULT_DATA_DIR}/{LOGS_DIR}",
    },
}


class Config:
    """Configuration manager for the messenger.

    Loads configuration from TOML files, merges with defaults,
    and applies environment variable overrides.

    Attributes:
        config_path: Path to the configuration file
        data: Configuration dictionary
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file (optional)
                If not provided, uses default location
        """
        if config_path is None:
            data_dir = Path(DEFAULT_DATA_DIR).expanduser()
            config_path = data_dir / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file and merge with defaults.

        Returns:
            Merged configuration dictionary

        Raises:
            ConfigError: If configuration parsing fails
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    file_config = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(
                    ErrorCode.E704_CONFIG_PARSE_ERROR,
                    f"Failed to parse configuration file: {e}",
                    {"path": str(self.config_path), "error": str(e)},
                ) from e

            config = self._merge_config(config, file_config)

        return self._apply_env_overrides(config)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge override config into base config."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables follow the pattern: PUBKY_MESSENGER_SECTION_KEY
        For example: PUBKY_MESSENGER_STORE_HOMESERVER=https://hs.example.org

        Args:
            config: Base configuration dictionary

        Returns:
            Configuration with environment overrides applied
        """
        for section, settings in config.items():
            if not isinstance(settings, dict):
                continue

            for key, current in settings.items():
                env_value = os.environ.get(f"{ENV_PREFIX}_{section.upper()}_{key.upper()}")
                if env_value is None:
                    continue

                try:
                    if isinstance(current, bool):
                        settings[key] = env_value.lower() in ("true", "1", "yes")
                    elif isinstance(current, int):
                        settings[key] = int(env_value)
                    elif isinstance(current, float):
                        settings[key] = float(env_value)
                    else:
                        settings[key] = env_value
                except ValueError:
                    # Keep original value if conversion fails
                    pass

        return config

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            section: Configuration section name
            key: Configuration key name
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self.data.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any) -> None:
        """Set a configuration value."""
        self.data.setdefault(section, {})[key] = value

    def session_file(self) -> Path:
        """Location of the wrapped session blob."""
        return Path(self.get("vault", "session_file")).expanduser()

    def save(self) -> None:
        """Save current configuration to file.

        Raises:
            ConfigError: If saving fails
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as f:
                self._write_toml(f, self.data)
        except OSError as e:
            raise ConfigError(
                ErrorCode.E702_CONFIG_SAVE_FAILED,
                f"Failed to save configuration: {e}",
                {"path": str(self.config_path), "error": str(e)},
            ) from e

    @staticmethod
    def _write_toml(file, data: Dict[str, Any]) -> None:
        """Write configuration data as TOML format."""
        for section, settings in data.items():
            if isinstance(settings, dict):
                file.write(f"[{section}]\n")
                for key, value in settings.items():
                    if isinstance(value, bool):
                        file.write(f"{key} = {str(value).lower()}\n")
                    elif isinstance(value, (int, float)):
                        file.write(f"{key} = {value}\n")
                    elif isinstance(value, str):
                        file.write(f'{key} = "{value}"\n')
                file.write("\n")

    def to_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary."""
        return copy.deepcopy(self.data)

    @classmethod
    def create_example(cls, path: Path) -> None:
        """Create an example configuration file.

        Args:
            path: Path where to create the example config

        Raises:
            ConfigError: If file creation fails
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            with open(path, "w") as f:
                f.write("# Pubky Private Messenger Configuration File\n")
                f.write("# Generated example configuration\n\n")
                cls._write_toml(f, DEFAULT_CONFIG)

        except OSError as e:
            raise ConfigError(
                ErrorCode.E702_CONFIG_SAVE_FAILED,
                f"Failed to create example configuration: {e}",
                {"path": str(path), "error": str(e)},
            ) from e
