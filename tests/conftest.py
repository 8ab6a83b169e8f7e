"""Pytest configuration and shared fixtures."""

import os
import pytest
from unittest.mock import AsyncMock

# Keep a developer's .env or shell settings from leaking into tests
for _name in list(os.environ):
    if _name.startswith("PROVKIT_"):
        del os.environ[_name]

from provkit.models.execution import CommandOutcome
from provkit.services.execution import CommandExecutor, ExecutionContext


@pytest.fixture
def base_env():
    """A small, predictable inherited environment."""
    return {"PATH": os.environ.get("PATH", "/usr/bin:/bin"), "HOME": "/home/tester"}


@pytest.fixture
def dry_context(base_env):
    """Context that never spawns processes."""
    return ExecutionContext(
        really_execute=False,
        base_env=base_env,
        os_params={"ID": "debian", "VERSION_ID": '"12"'},
        arch="x86_64",
    )


@pytest.fixture
def real_context():
    """Context that spawns processes with the test runner's environment."""
    return ExecutionContext(
        really_execute=True,
        base_env=dict(os.environ),
        os_params={"ID": "debian"},
        arch="x86_64",
    )


@pytest.fixture
def executor():
    """Real executor."""
    return CommandExecutor(privilege_command="sudo")


@pytest.fixture
def mock_executor():
    """Executor with mocked run/execute, real command constructors."""
    mock = AsyncMock(spec=CommandExecutor)
    real = CommandExecutor(privilege_command="sudo")
    mock.as_root.side_effect = real.as_root
    mock.build.side_effect = real.build
    mock.run.return_value = CommandOutcome(exit_code=0)
    mock.execute.return_value = CommandOutcome(exit_code=0)
    return mock


@pytest.fixture
def make_outcome():
    """Factory for command outcomes."""

    def _make(exit_code: int = 0, stdout: str = "", stderr: str = "") -> CommandOutcome:
        return CommandOutcome(exit_code=exit_code, stdout=stdout, stderr=stderr)

    return _make
