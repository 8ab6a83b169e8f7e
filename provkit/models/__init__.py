"""Data models for provkit."""

from .execution import Command, CommandOutcome, Effect, Necessity
from .container import (
    CleanupResult,
    CleanupStep,
    ContainerHandle,
    ContainerState,
    ParsedImage,
)
from .errors import (
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    ProvisioningError,
    NotFoundError,
    StructureMismatchError,
    ExecutionFailure,
    IOFailure,
    EnvironmentFailure,
    ExternalServiceError,
)

__all__ = [
    # Execution models
    "Command",
    "CommandOutcome",
    "Effect",
    "Necessity",
    # Container models
    "CleanupResult",
    "CleanupStep",
    "ContainerHandle",
    "ContainerState",
    "ParsedImage",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "ProvisioningError",
    "NotFoundError",
    "StructureMismatchError",
    "ExecutionFailure",
    "IOFailure",
    "EnvironmentFailure",
    "ExternalServiceError",
]
