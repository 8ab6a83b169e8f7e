"""Container lifecycle and port search configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LifecycleConfig(BaseSettings):
    """Polling and resource search defaults."""

    container_runtime: str = Field(default="docker")
    lifecycle_timeout_ms: int = Field(default=30000, ge=1)
    lifecycle_poll_interval_ms: int = Field(default=500, ge=1)

    # Port search
    port_search_start: int = Field(default=40000, ge=1, le=65535)
    port_search_window: int = Field(default=100, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="PROVKIT_", extra="ignore")
