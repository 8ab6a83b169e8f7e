"""Error models and exception classes for provkit."""

import time
from typing import TYPE_CHECKING, List, Optional
from pydantic import BaseModel, Field
from enum import Enum

if TYPE_CHECKING:
    from .execution import CommandOutcome


class ErrorType(str, Enum):
    """Error type enumeration."""

    NOT_FOUND = "not_found"
    STRUCTURE_MISMATCH = "structure_mismatch"
    EXECUTION_FAILED = "execution_failed"
    IO_FAILURE = "io_failure"
    ENVIRONMENT = "environment"
    EXTERNAL_SERVICE = "external_service"
    INTERNAL = "internal"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Name of the value the detail is about")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Structured error report printed by entry points."""

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")

    class Config:
        use_enum_values = True


# Custom Exception Classes


class ProvisioningError(Exception):
    """Base exception for provkit."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL,
        details: Optional[List[ErrorDetail]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or []
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
        )


class NotFoundError(ProvisioningError):
    """A search or lookup came up empty."""

    def __init__(self, message: str = "Not found", **kwargs):
        super().__init__(message=message, error_type=ErrorType.NOT_FOUND, **kwargs)


class StructureMismatchError(ProvisioningError):
    """A document node had the wrong shape for the requested operation."""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        self.key = key
        if key is not None and "details" not in kwargs:
            kwargs["details"] = [
                ErrorDetail(field=key, message="not a mapping", code="not_a_mapping")
            ]
        super().__init__(
            message=message, error_type=ErrorType.STRUCTURE_MISMATCH, **kwargs
        )


class ExecutionFailure(ProvisioningError):
    """A child process exited non-zero and the caller asked for it to raise."""

    def __init__(self, command: str, outcome: "CommandOutcome", message: str = None):
        self.command = command
        self.outcome = outcome
        error_message = message or (
            f"Command exited with status {outcome.exit_code}: {command}"
        )
        details = [
            ErrorDetail(field="exit_code", message=str(outcome.exit_code)),
        ]
        if outcome.stdout:
            details.append(ErrorDetail(field="stdout", message=outcome.stdout))
        if outcome.stderr:
            details.append(ErrorDetail(field="stderr", message=outcome.stderr))
        if outcome.timed_out:
            details.append(ErrorDetail(message="timed out", code="timeout"))
        super().__init__(
            message=error_message,
            error_type=ErrorType.EXECUTION_FAILED,
            details=details,
        )


class IOFailure(ProvisioningError):
    """Reading or writing a configuration artifact failed."""

    def __init__(self, path: str, error: Exception, **kwargs):
        self.path = str(path)
        super().__init__(
            message=f"I/O failure on {path}: {error}",
            error_type=ErrorType.IO_FAILURE,
            details=[ErrorDetail(field="path", message=str(path))],
            **kwargs,
        )


class EnvironmentFailure(ProvisioningError):
    """A required environment value or the home directory is missing."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_type=ErrorType.ENVIRONMENT, **kwargs)


class ExternalServiceError(ProvisioningError):
    """A remote resource (e.g. a keyring download) could not be fetched."""

    def __init__(self, service: str, message: str = None, **kwargs):
        error_message = message or f"{service} is currently unavailable"
        super().__init__(
            message=error_message,
            error_type=ErrorType.EXTERNAL_SERVICE,
            **kwargs,
        )
