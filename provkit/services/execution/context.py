"""Execution context: environment overlay, extra PATH entries and an OS snapshot.

A context is owned by a single provisioning run. The OS and architecture
snapshot is taken once, at creation; the variable and path overlays may be
changed freely by the owner.
"""

import os
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

import structlog

from ...models.errors import EnvironmentFailure, IOFailure
from ...models.execution import Command

if TYPE_CHECKING:
    from .executor import CommandExecutor

logger = structlog.get_logger(__name__)


def parse_os_release(contents: str) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines, splitting on the first ``=`` only.

    Lines without ``=`` are ignored; values are kept as written, quotes
    included.
    """
    result: Dict[str, str] = {}
    for line in contents.split("\n"):
        name, sep, value = line.partition("=")
        if sep:
            result[name] = value
    return result


def read_os_release(path: str = "/etc/os-release") -> Dict[str, str]:
    """Read and parse an os-release style file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return parse_os_release(f.read())
    except OSError as e:
        raise IOFailure(path, e)


class ExecutionContext:
    """Everything a command needs to know about where it runs."""

    def __init__(
        self,
        really_execute: bool = False,
        base_env: Optional[Mapping[str, str]] = None,
        os_params: Optional[Mapping[str, str]] = None,
        arch: str = "",
    ):
        """Initialize a context.

        Args:
            really_execute: False for dry run
            base_env: Inherited environment snapshot; empty if not given
            os_params: Parsed OS metadata
            arch: Machine architecture name
        """
        self.really_execute = really_execute
        self.vars: Dict[str, str] = {}
        self.append_paths: List[str] = []
        self._base_env = MappingProxyType(dict(base_env or {}))
        self._os_params = MappingProxyType(dict(os_params or {}))
        self._arch = arch

    @classmethod
    async def create(
        cls,
        really_execute: bool,
        executor: "CommandExecutor",
        os_release_path: str = "/etc/os-release",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ExecutionContext":
        """Build a context from the live process environment.

        This is the one place the process environment is read.
        """
        base_env = dict(os.environ if environ is None else environ)
        os_params = read_os_release(os_release_path)
        arch = await cls.detect_arch(executor, base_env)
        logger.debug(
            "Execution context created",
            really_execute=really_execute,
            arch=arch,
            os_id=os_params.get("ID"),
        )
        return cls(
            really_execute=really_execute,
            base_env=base_env,
            os_params=os_params,
            arch=arch,
        )

    @staticmethod
    async def detect_arch(executor: "CommandExecutor", env: Mapping[str, str]) -> str:
        """Ask ``arch`` for the machine architecture."""
        command = Command(program="arch", silent=True, throw_on_failure=True)
        outcome = await executor.run(command, env=dict(env))
        return outcome.sanitised_stdout()

    @property
    def os_params(self) -> Mapping[str, str]:
        return self._os_params

    @property
    def arch(self) -> str:
        return self._arch

    @property
    def base_env(self) -> Mapping[str, str]:
        return self._base_env

    def add_to_path(self, path: str) -> None:
        self.append_paths.append(path)

    def add_to_env(self, name: str, value: str) -> None:
        self.vars[name] = value

    def build_env(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Full child environment.

        Precedence, lowest first: inherited environment, per-command
        ``extra``, rebuilt ``PATH``, context variables.

        Raises:
            EnvironmentFailure: If paths must be appended but no PATH was
                inherited
        """
        env = dict(self._base_env)
        if extra:
            env.update(extra)
        if self.append_paths:
            inherited = self._base_env.get("PATH")
            if inherited is None:
                raise EnvironmentFailure("PATH is not set in the inherited environment")
            env["PATH"] = ":".join([inherited, *self.append_paths])
        env.update(self.vars)
        return env

    def describe_env(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Only the variables this context and ``extra`` change, for display."""
        shown: Dict[str, str] = dict(extra or {})
        if self.append_paths:
            shown["PATH"] = ":".join(["$PATH", *self.append_paths])
        shown.update(self.vars)
        return shown
