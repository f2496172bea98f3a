"""
Result types and error hierarchy for noter.

This module provides:
1. Result[T, E] type for explicit error handling
2. Domain-specific exception hierarchy for the submission pipeline

Usage:
    from noter.core.result import Ok, Err, Result, ExecutionError

    async def attempt() -> Result[SubmissionResult, NoterError]:
        if failed:
            return Err(ExecutionError("opencode exited with status 1"))
        return Ok(result)

    match await attempt():
        case Ok(value):
            ...
        case Err(error):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Represents a successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply a function to the contained value."""
        return Ok(fn(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Represents a failed result containing an error."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the contained error."""
        raise self.error

    def map(self, fn: Callable[[T], U]) -> Err[E]:
        """No-op for Err - returns self unchanged."""
        return self


Result = Ok[T] | Err[E]


# ---------------------------------------------------------------------------
# Domain-specific error hierarchy
# ---------------------------------------------------------------------------


class NoterError(Exception):
    """Base exception for all noter errors.

    Carries a human-readable message plus optional structured context that is
    rendered as ``key=value`` pairs.
    """

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class SpawnError(NoterError):
    """Raised when the external tool cannot be started.

    Examples:
    - Executable path does not exist
    - Executable bit not set
    - Target directory missing
    """


class ExecutionError(NoterError):
    """Raised when the external tool exits with a nonzero status.

    ``stderr`` holds the accumulated error stream of the process and is the
    message body shown to the user.
    """

    def __init__(self, stderr: str, *, exit_code: int | None = None) -> None:
        body = stderr.strip() or f"exited with status {exit_code}"
        super().__init__(f"opencode execution failed: {body}")
        self.stderr = stderr
        self.exit_code = exit_code


class PersistenceError(NoterError):
    """Raised inside a store when its JSON document cannot be read or written.

    Never escapes the store boundary; stores log it and carry on.
    """


__all__ = [
    "Err",
    "ExecutionError",
    "NoterError",
    "Ok",
    "PersistenceError",
    "Result",
    "SpawnError",
]
