"""Logging configuration."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseSettings):
    """Log output settings."""

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_file: Optional[str] = Field(default=None)
    log_max_size_mb: int = Field(default=10, ge=1)
    log_backup_count: int = Field(default=5, ge=1)

    model_config = SettingsConfigDict(env_prefix="PROVKIT_", extra="ignore")
