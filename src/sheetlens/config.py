"""Configuration management for SheetLens.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
SHEETLENS_ prefix, or via a .env file in the project root.

Environment Variables:
    SHEETLENS_MAX_CONCURRENT_FILE_LOADS: Parallel file loads (default: 5)
    SHEETLENS_STRING_POOL_MAX_ENTRIES: Interned string cap (default: 50000)
    SHEETLENS_STRING_POOL_MAX_LENGTH: Longest interned text (default: 100)
    SHEETLENS_CSV_SAMPLE_LINES: Lines sampled for delimiter detection (default: 5)
    SHEETLENS_ENABLE_FILE_LOGGING: Persist per-file load logs (default: true)
    SHEETLENS_FILE_LOG_DIR: Root directory for per-file load logs
    SHEETLENS_LOG_RETENTION_DAYS: Days to keep load logs, 0 keeps all (default: 30)
    SHEETLENS_APP_VERSION: Version recorded in load logs
    SHEETLENS_LOG_LEVEL: Logging level (default: INFO)
    SHEETLENS_DEBUG: Enable debug mode (default: false)
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sheetlens import __version__
from sheetlens.utils.exceptions import ConfigurationError
from sheetlens.utils.logging import configure_logging


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Example .env file:
        SHEETLENS_MAX_CONCURRENT_FILE_LOADS=8
        SHEETLENS_LOG_LEVEL=DEBUG
        SHEETLENS_FILE_LOG_DIR=/var/log/sheetlens
    """

    model_config = SettingsConfigDict(
        env_prefix="SHEETLENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Loading Settings
    # =========================================================================

    max_concurrent_file_loads: int = 5
    """Maximum number of files read in parallel (1-32)."""

    csv_sample_lines: int = 5
    """Leading non-blank lines sampled when auto-detecting a CSV delimiter."""

    # =========================================================================
    # String Pool Settings
    # =========================================================================

    string_pool_max_entries: int = 50_000
    """Maximum number of distinct interned strings."""

    string_pool_max_length: int = 100
    """Texts longer than this are never interned."""

    # =========================================================================
    # File Log Settings
    # =========================================================================

    enable_file_logging: bool = True
    """Write one JSON record per load attempt."""

    file_log_dir: str = str(Path.home() / ".sheetlens" / "logs")
    """Root directory holding per-file load logs."""

    log_retention_days: int = 30
    """Days to keep load logs. 0 disables cleanup."""

    app_version: str = __version__
    """Application version stamped into load logs."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with additional logging."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("max_concurrent_file_loads")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Validate parallel load count is reasonable."""
        if not 1 <= v <= 32:
            raise ValueError(
                f"max_concurrent_file_loads must be between 1 and 32, got {v}"
            )
        return v

    @field_validator("string_pool_max_entries", "string_pool_max_length")
    @classmethod
    def validate_pool_limits(cls, v: int) -> int:
        """Validate string pool limits are non-negative."""
        if v < 0:
            raise ValueError(f"String pool limits must be non-negative, got {v}")
        return v

    @field_validator("csv_sample_lines")
    @classmethod
    def validate_sample_lines(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"csv_sample_lines must be at least 1, got {v}")
        return v

    @field_validator("log_retention_days")
    @classmethod
    def validate_retention(cls, v: int) -> int:
        """Validate retention is zero (disabled) or positive."""
        if v < 0:
            raise ValueError(f"log_retention_days must be >= 0, got {v}")
        return v

    @model_validator(mode="after")
    def validate_file_log_dir(self) -> "Settings":
        """Require a log directory when file logging is enabled."""
        if self.enable_file_logging and not self.file_log_dir.strip():
            raise ValueError("file_log_dir must be set when file logging is enabled")
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def file_log_path(self) -> Path:
        """Get the file log root as a Path."""
        return Path(self.file_log_dir).expanduser()

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary suitable for logging.

        Returns:
            Dictionary representation of every setting.
        """
        return {
            "max_concurrent_file_loads": self.max_concurrent_file_loads,
            "csv_sample_lines": self.csv_sample_lines,
            "string_pool_max_entries": self.string_pool_max_entries,
            "string_pool_max_length": self.string_pool_max_length,
            "enable_file_logging": self.enable_file_logging,
            "file_log_dir": self.file_log_dir,
            "log_retention_days": self.log_retention_days,
            "app_version": self.app_version,
            "log_level": self.log_level,
            "debug": self.debug,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Validate settings on application startup.

    Args:
        s: Settings instance to validate.

    Raises:
        ConfigurationError: If file logging points at a path that is not
            a directory.
    """
    logger = logging.getLogger(__name__)

    if s.enable_file_logging:
        log_path = s.file_log_path
        if log_path.exists() and not log_path.is_dir():
            raise ConfigurationError(
                f"File log directory is not a directory: {log_path}",
                {"field": "file_log_dir", "value": str(log_path)},
            )
        if s.log_retention_days == 0:
            logger.warning(
                "Load log retention is disabled; log files will accumulate under "
                f"{s.file_log_dir}. Set SHEETLENS_LOG_RETENTION_DAYS to prune them."
            )

    if s.string_pool_max_entries == 0:
        logger.warning("String pool is disabled (SHEETLENS_STRING_POOL_MAX_ENTRIES=0)")

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"max_concurrent_file_loads={s.max_concurrent_file_loads}, "
        f"file_logging={s.enable_file_logging}"
    )


def setup_logging(s: Settings | None = None) -> None:
    """Configure root logging from settings and validate them.

    Debug mode forces the DEBUG level regardless of ``log_level``.

    Args:
        s: Settings to apply. Defaults to the global settings.
    """
    s = s or settings
    configure_logging(
        level=logging.DEBUG if s.debug else s.log_level_int,
        use_structured_formatter=True,
    )
    validate_settings_on_startup(s)


# Create the global settings instance
settings = Settings()
