"""Command execution configuration."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecutionConfig(BaseSettings):
    """Settings for spawning external commands."""

    really_execute: bool = Field(default=False)
    privilege_command: str = Field(default="sudo")
    shell_binary: str = Field(default="bash")
    package_manager: str = Field(default="apt")
    command_timeout: Optional[float] = Field(default=None, gt=0)
    os_release_path: str = Field(default="/etc/os-release")

    model_config = SettingsConfigDict(env_prefix="PROVKIT_", extra="ignore")
