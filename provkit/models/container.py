"""Container lifecycle data models."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .errors import StructureMismatchError
from .execution import CommandOutcome


class ContainerState(str, Enum):
    """Lifecycle states inferred from the runtime's status string."""

    UNKNOWN = "unknown"
    RUNNING = "running"
    STOPPED = "stopped"

    @classmethod
    def from_status(cls, status: Optional[str]) -> "ContainerState":
        """Map a reported status string to a state.

        Only the exact string ``running`` counts as running; an absent
        status is unknown and anything else is stopped.
        """
        if status is None or status == "":
            return cls.UNKNOWN
        if status == "running":
            return cls.RUNNING
        return cls.STOPPED


@dataclass(frozen=True)
class ContainerHandle:
    """Opaque name of an externally managed unit."""

    name: str

    def __str__(self) -> str:
        return self.name


class CleanupStep(BaseModel):
    """One step of a best-effort cleanup."""

    action: str
    outcome: Optional[CommandOutcome] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.outcome is not None and self.outcome.success


class CleanupResult(BaseModel):
    """Advisory result of a cleanup.

    Failures are recorded here instead of being raised; callers may look
    at them but nothing forces them to.
    """

    target: str
    steps: List[CleanupStep] = Field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return all(step.succeeded for step in self.steps)

    @property
    def failures(self) -> List[CleanupStep]:
        return [step for step in self.steps if not step.succeeded]


@dataclass(frozen=True)
class ParsedImage:
    """An image reference split into repository and tag."""

    base_url: str
    version: str

    @classmethod
    def from_url(cls, url: str) -> "ParsedImage":
        """Parse ``registry/path/name[:tag]``.

        Raises:
            StructureMismatchError: If the reference has no path separator
                or no image name.
        """
        path_parts = url.split("/")
        if len(path_parts) < 2:
            raise StructureMismatchError(f"Invalid image reference: {url}")

        image_with_version = path_parts.pop()
        image_parts = image_with_version.split(":")
        image_name = image_parts[0]
        if not image_name:
            raise StructureMismatchError(f"Missing image name: {url}")
        version = image_parts[1] if len(image_parts) > 1 else "latest"

        return cls(base_url="/".join(path_parts + [image_name]), version=version)
