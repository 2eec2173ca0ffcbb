"""Centralized configuration management."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .constants import (
    DEFAULT_MAX_CHAT_LENGTH,
    DEFAULT_MAX_CHATS,
    DEFAULT_MAX_MESSAGES,
    TRUNCATION_MARKER,
)
from .exceptions import ConfigError, PathTraversalError
from .logging_config import get_logger

logger = get_logger("config")

_TRUE_VALUES = ("1", "true", "yes", "on")


def validate_path(path: Path, allowed_bases: Optional[list[Path]] = None) -> Path:
    """Validate and resolve a path, checking for traversal attacks.

    Args:
        path: Path to validate
        allowed_bases: Optional list of allowed base directories

    Returns:
        Resolved absolute path

    Raises:
        PathTraversalError: If path contains traversal sequences outside allowed bases
    """
    resolved = path.expanduser().resolve()

    if ".." in str(path):
        # Without allowed bases there is nothing to check a traversal against
        if not allowed_bases:
            raise PathTraversalError(str(path), "no base directories allowed")
        logger.warning("Path contains traversal sequence: %s", path)

    if allowed_bases:
        for base in allowed_bases:
            try:
                resolved.relative_to(base.expanduser().resolve())
                break
            except ValueError:
                continue
        else:
            logger.error(
                "Path traversal detected: %s not under allowed bases %s",
                resolved,
                [str(b) for b in allowed_bases]
            )
            raise PathTraversalError(str(path), str(allowed_bases))

    return resolved


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return value


class Config:
    """Application configuration."""

    # Default paths (XDG Base Directory compliant)
    DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "twirl"
    CONFIG_DIR = Path.home() / ".config" / "twirl"
    CONFIG_FILE = CONFIG_DIR / "config.yaml"
    STORAGE_FILE_NAME = "storage.json"

    # Allowed base directories for the data directory (security)
    ALLOWED_DATA_BASES = [
        Path.home(),
    ]

    def __init__(self):
        self._config: dict = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file."""
        if not self.CONFIG_FILE.exists():
            logger.debug("Config file not found: %s", self.CONFIG_FILE)
            return

        try:
            with open(self.CONFIG_FILE, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error("Failed to parse config file: %s", e)
            return
        except OSError as e:
            logger.error("Failed to read config file: %s", e)
            return

        if not isinstance(loaded, dict):
            logger.error("Config file must contain a mapping, ignoring: %s", self.CONFIG_FILE)
            return
        self._config = loaded
        logger.debug("Loaded config from: %s", self.CONFIG_FILE)

    @property
    def max_chats(self) -> int:
        """Maximum number of stored conversation records.

        Raises:
            ConfigError: If the configured value is not a positive integer
        """
        return _positive_int("max_chats", self._config.get("max_chats", DEFAULT_MAX_CHATS))

    @property
    def max_chat_length(self) -> int:
        """Character cap for formatted transfer text.

        Raises:
            ConfigError: If the value leaves no room beyond the truncation marker
        """
        value = _positive_int(
            "max_chat_length", self._config.get("max_chat_length", DEFAULT_MAX_CHAT_LENGTH)
        )
        if value <= len(TRUNCATION_MARKER):
            raise ConfigError(
                f"max_chat_length must be greater than {len(TRUNCATION_MARKER)}, got {value}"
            )
        return value

    @property
    def max_messages(self) -> int:
        """Number of turns included in formatted transfer text."""
        return _positive_int("max_messages", self._config.get("max_messages", DEFAULT_MAX_MESSAGES))

    @property
    def debug(self) -> bool:
        env_debug = os.environ.get("TWIRL_DEBUG")
        if env_debug is not None:
            return env_debug.strip().lower() in _TRUE_VALUES
        return bool(self._config.get("debug", False))

    @property
    def data_dir(self) -> Path:
        """Get data directory from environment, config, or default.

        Returns:
            Validated path to the data directory

        Raises:
            PathTraversalError: If configured path is outside allowed bases
        """
        path: Path

        # 1. Environment variable (highest priority)
        env_dir = os.environ.get("TWIRL_DATA_DIR")
        if env_dir:
            path = Path(env_dir)
        # 2. Config file
        elif self._config.get("data_dir"):
            path = Path(self._config["data_dir"])
        # 3. Default
        else:
            return self.DEFAULT_DATA_DIR

        return validate_path(path, self.ALLOWED_DATA_BASES)

    @property
    def log_file(self) -> Optional[Path]:
        """Optional log file from the config file, validated like data_dir."""
        value = self._config.get("log_file")
        if not value:
            return None
        return validate_path(Path(value), self.ALLOWED_DATA_BASES)

    @property
    def storage_path(self) -> Path:
        return self.data_dir / self.STORAGE_FILE_NAME

    def ensure_data_dir(self) -> None:
        """Ensure data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _config
    _config = None
