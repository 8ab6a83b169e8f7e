"""Command and outcome models for the executor."""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Necessity(str, Enum):
    """Whether failure of a command should stop the caller's flow."""

    MANDATORY = "mandatory"
    OPTIONAL = "optional"


class Effect(str, Enum):
    """Whether a command changes state or only queries it."""

    IMPERATIVE = "imperative"
    INTERROGATIVE = "interrogative"


@dataclass
class Command:
    """An external program invocation.

    ``necessity`` and ``effect`` are bookkeeping for the caller; the
    executor does not act on them. Run behavior is controlled by the
    remaining options.
    """

    program: str
    args: List[str] = field(default_factory=list)
    necessity: Necessity = Necessity.OPTIONAL
    effect: Effect = Effect.INTERROGATIVE

    # Per-command environment, applied on top of the execution context
    env: Dict[str, str] = field(default_factory=dict)
    stdin: Optional[str] = None
    silent: bool = False
    log_output: bool = False
    throw_on_failure: bool = False
    timeout: Optional[float] = None

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]

    @property
    def is_mandatory(self) -> bool:
        return self.necessity is Necessity.MANDATORY

    @property
    def is_imperative(self) -> bool:
        return self.effect is Effect.IMPERATIVE

    def mandatory(self) -> "Command":
        self.necessity = Necessity.MANDATORY
        return self

    def optional(self) -> "Command":
        self.necessity = Necessity.OPTIONAL
        return self

    def imperative(self) -> "Command":
        self.effect = Effect.IMPERATIVE
        return self

    def interrogative(self) -> "Command":
        self.effect = Effect.INTERROGATIVE
        return self

    def env_var(self, name: str, value: str) -> "Command":
        self.env[name] = value
        return self

    def describe(self, env: Optional[Dict[str, str]] = None) -> str:
        """Render the command as a shell-like line, environment first.

        Args:
            env: Variables to show in front of the argv. Defaults to the
                command's own ``env``.
        """
        shown = self.env if env is None else env
        parts = [f"{name}={shlex.quote(value)}" for name, value in shown.items()]
        parts.extend(shlex.quote(a) for a in self.argv)
        return " ".join(parts)


class CommandOutcome(BaseModel):
    """Result of one command execution. Never mutated after return."""

    model_config = ConfigDict(frozen=True)

    exit_code: int = Field(..., description="Exit code from execution")
    stdout: str = Field(default="", description="Standard output")
    stderr: str = Field(default="", description="Standard error")
    timed_out: bool = Field(default=False, description="Whether execution timed out")

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def sanitised_stdout(self) -> str:
        """Standard output with trailing whitespace removed."""
        return self.stdout.rstrip()

    @classmethod
    def fake(cls, success: bool = True) -> "CommandOutcome":
        """Synthetic outcome used when nothing was spawned."""
        return cls(exit_code=0 if success else 1)
