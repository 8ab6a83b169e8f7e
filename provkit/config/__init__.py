"""Configuration management for provkit.

This module provides a unified Settings class with flat fields loaded from
the environment (prefix ``PROVKIT_``) or a ``.env`` file, plus grouped
views for the execution, lifecycle and logging concerns.

Usage:
    from provkit.config import settings

    # Access grouped settings
    settings.execution.privilege_command
    settings.lifecycle.lifecycle_poll_interval_ms

    # Or flat access
    settings.privilege_command
    settings.lifecycle_poll_interval_ms

Only outermost entry points should read ``settings``; library code takes
its values as explicit arguments.
"""

from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Import grouped configurations
from .execution import ExecutionConfig
from .lifecycle import LifecycleConfig
from .logging import LoggingConfig


class Settings(BaseSettings):
    """Toolkit settings with environment variable support.

    This class provides both:
    1. Grouped access via nested configs (settings.execution.shell_binary)
    2. Flat access (settings.shell_binary)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROVKIT_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # EXECUTION
    # ========================================================================

    # Dry-run is the default; scripts opt in to real side effects.
    really_execute: bool = Field(default=False)
    privilege_command: str = Field(default="sudo", min_length=1)
    shell_binary: str = Field(default="bash", min_length=1)
    package_manager: str = Field(default="apt", min_length=1)
    command_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds before a spawned command is killed; unset means no limit",
    )
    os_release_path: str = Field(default="/etc/os-release")

    # ========================================================================
    # CONFIG ARTIFACTS
    # ========================================================================

    marker_prefix: str = Field(default="provkit", min_length=1)
    profile_file: str = Field(
        default=".bashrc", description="Shell profile, relative to the home directory"
    )
    keyring_dir: str = Field(default="/etc/apt/keyrings")
    keyring_mode: int = Field(default=0o644, ge=0, le=0o777)
    download_timeout: float = Field(default=30.0, gt=0, le=600)

    # ========================================================================
    # LIFECYCLE / PORTS
    # ========================================================================

    container_runtime: str = Field(default="docker", min_length=1)
    lifecycle_timeout_ms: int = Field(default=30000, ge=1)
    lifecycle_poll_interval_ms: int = Field(default=500, ge=1)
    port_search_start: int = Field(default=40000, ge=1, le=65535)
    port_search_window: int = Field(default=100, ge=1, le=65535)

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_file: Optional[str] = Field(default=None)
    log_max_size_mb: int = Field(default=10, ge=1)
    log_backup_count: int = Field(default=5, ge=1)

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @validator("log_format")
    def validate_log_format(cls, v):
        """Only json and console renderers exist."""
        if v.lower() not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v.lower()

    @validator("marker_prefix")
    def validate_marker_prefix(cls, v):
        """Markers are single lines; a prefix must not break them."""
        if "\n" in v or "\r" in v:
            raise ValueError("marker_prefix must be a single line")
        return v

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def execution(self) -> ExecutionConfig:
        """Access command execution configuration group."""
        return ExecutionConfig(
            really_execute=self.really_execute,
            privilege_command=self.privilege_command,
            shell_binary=self.shell_binary,
            package_manager=self.package_manager,
            command_timeout=self.command_timeout,
            os_release_path=self.os_release_path,
        )

    @property
    def lifecycle(self) -> LifecycleConfig:
        """Access lifecycle polling and port search configuration group."""
        return LifecycleConfig(
            container_runtime=self.container_runtime,
            lifecycle_timeout_ms=self.lifecycle_timeout_ms,
            lifecycle_poll_interval_ms=self.lifecycle_poll_interval_ms,
            port_search_start=self.port_search_start,
            port_search_window=self.port_search_window,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
        )


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    # Grouped configs
    "ExecutionConfig",
    "LifecycleConfig",
    "LoggingConfig",
]
