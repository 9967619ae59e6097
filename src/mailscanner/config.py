"""Configuration management for MailScanner.

Supports layered configuration with priority: CLI args > ENV vars > .env file > defaults
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import platformdirs
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _get_default_data_dir() -> Path:
    """Get platform-appropriate default data directory using platformdirs.

    Uses OS-specific conventions:
    - macOS: ~/Library/Application Support/MailScanner
    - Windows: %APPDATA%/MailScanner
    - Linux: ~/.local/share/mailscanner

    Returns:
        Path to platform-specific user data directory
    """
    return Path(platformdirs.user_data_dir("MailScanner", "MailScanner"))


def get_user_log_dir() -> Path:
    """Get platform-appropriate user logs directory.

    Returns:
        Path to platform-specific logs directory
    """
    return Path(platformdirs.user_log_dir("MailScanner", "MailScanner"))


class Settings(BaseSettings):
    """Application settings with layered configuration support.

    Configuration is loaded in the following priority (highest to lowest):
    1. Arguments passed directly to Settings()
    2. Environment variables (prefixed with MAILSCANNER_)
    3. .env file (if present in current directory)
    4. Default values

    Environment variables:
        MAILSCANNER_API_BASE_URL: Base URL of the mail-indexing API
        MAILSCANNER_REQUEST_TIMEOUT: HTTP timeout in seconds (default: 30)
        MAILSCANNER_DATA_DIR: Data directory path
        MAILSCANNER_STORAGE_MAX_SIZE: Soft storage budget (default: 1 MiB)
        MAILSCANNER_LOG_LEVEL: Logging level (default: INFO)
    """

    model_config = SettingsConfigDict(
        env_prefix="MAILSCANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # API
    api_base_url: str = Field(
        default="http://127.0.0.1:8080/api",
        description="Base URL of the mail-indexing API",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Timeout for API requests (seconds)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)",
    )

    # Paths
    data_dir: Path = Field(
        default_factory=_get_default_data_dir,
        description="Base directory for application data",
    )
    storage_path: Path | None = Field(
        default=None,
        description="Location of the persistent key-value store (default: data_dir/local_storage.json)",
    )

    # Storage budget
    storage_capacity: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Hard capacity of the file-backed store (characters)",
    )
    storage_max_size: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Soft budget used to plan cleanup before the hard limit is hit",
    )
    storage_write_warning_ratio: float = Field(
        default=0.9,
        gt=0,
        le=1.0,
        description="Share of budget above which a write triggers cleanup first",
    )
    storage_cleanup_ratio: float = Field(
        default=0.8,
        gt=0,
        le=1.0,
        description="Share of budget above which cleanup removes non-essential keys",
    )
    storage_monitor_ratio: float = Field(
        default=0.5,
        gt=0,
        le=1.0,
        description="Share of budget above which the usage monitor warns",
    )
    storage_monitor_interval: float = Field(
        default=60.0,
        ge=1.0,
        le=3600.0,
        description="Seconds between usage monitor samples",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="text",
        description="Log format: 'text' for human-readable, 'json' for structured logging",
    )
    log_to_file: bool = Field(
        default=False,
        description="Enable logging to file (in addition to console)",
    )
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024 * 1024,  # Min 1 MB
        le=100 * 1024 * 1024,  # Max 100 MB
        description="Maximum size of each log file before rotation",
    )
    log_file_backup_count: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of backup log files to keep",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is supported."""
        valid_formats = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of: {', '.join(valid_formats)}")
        return v_lower

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def check_ratios(self) -> Settings:
        """Cleanup must aim below the point where writes start evicting."""
        if self.storage_cleanup_ratio > self.storage_write_warning_ratio:
            raise ValueError(
                f"storage_cleanup_ratio ({self.storage_cleanup_ratio}) must not exceed "
                f"storage_write_warning_ratio ({self.storage_write_warning_ratio})"
            )
        return self

    @property
    def storage_file(self) -> Path:
        """Path to the persistent key-value store."""
        return self.storage_path or self.data_dir / "local_storage.json"

    @property
    def log_dir(self) -> Path:
        """Directory for log files (uses platform-specific directory)."""
        return get_user_log_dir()

    @property
    def log_file_path(self) -> Path:
        """Path to the main log file."""
        return self.log_dir / "mailscanner.log"

    def print_config(self) -> None:
        """Print current configuration to stdout."""
        print("MailScanner Configuration:")
        print(f"  API Base URL: {self.api_base_url}")
        print(f"  Request Timeout: {self.request_timeout}s")
        print(f"  Debug: {self.debug}")
        print(f"  Log Level: {self.log_level}")
        print(f"  Log Format: {self.log_format}")
        print(f"  Log to File: {self.log_to_file}")
        if self.log_to_file:
            print(f"  Log File: {self.log_file_path}")
        print(f"  Data Directory: {self.data_dir}")
        print(f"  Storage File: {self.storage_file}")
        print(f"  Storage Capacity: {self.storage_capacity} bytes")
        print(f"  Storage Budget: {self.storage_max_size} bytes")
        print(
            f"  Storage Ratios: warn={self.storage_write_warning_ratio}, "
            f"cleanup={self.storage_cleanup_ratio}, monitor={self.storage_monitor_ratio}"
        )
        print(f"  Monitor Interval: {self.storage_monitor_interval}s")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload settings,
    call get_settings.cache_clear() first.

    Returns:
        Settings instance
    """
    return Settings()


def reset_settings() -> None:
    """Clear settings cache to force reload on next get_settings() call."""
    get_settings.cache_clear()
