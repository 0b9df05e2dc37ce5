"""Error taxonomy and explicit outcomes for the diary engine.

Every public operation in the engine returns a ``Result`` rather than raising
past its boundary. Failures carry one of the typed errors defined here so
callers can decide how to present them.

Example:
    >>> from smart_diary.core.errors import Result, OfflineError
    >>> outcome = Result.fail(OfflineError("offline"))
    >>> if not outcome.is_success:
    ...     print(outcome.error.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# =============================================================================
# Exception Hierarchy
# =============================================================================


class DiaryAIError(Exception):
    """Base exception for all diary engine errors.

    Attributes:
        message: Human-readable error description (safe to log).
        retriable: Whether the operation can be retried.
        details: Additional error context for diagnostics.
        original_error: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retriable = retriable
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class NetworkError(DiaryAIError):
    """Transport failure, non-2xx status, or retries exhausted.

    Attributes:
        status_code: Last HTTP status seen, or None for transport failures.
        attempts: Number of attempts made before giving up.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        attempts: int = 1,
        original_error: BaseException | None = None,
    ) -> None:
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(
            message,
            retriable=False,
            details={"status_code": status_code, "attempts": attempts},
            original_error=original_error,
        )


class OfflineError(DiaryAIError):
    """Caller declared that no connectivity is available."""


class EmptyInputError(DiaryAIError):
    """Multi-photo generation was requested with zero photos."""


class GenerationParseError(DiaryAIError):
    """Remote call succeeded but produced no usable text."""


class UnexpectedError(DiaryAIError):
    """Any other exception raised while building or processing a request."""


class MissingApiKeyError(DiaryAIError):
    """No Gemini API key is configured, so no request can be sent."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No Gemini API key configured. Set GEMINI_API_KEY or store it in the system keyring."
        )


# =============================================================================
# Result
# =============================================================================


@dataclass(frozen=True)
class Result(Generic[T]):
    """Explicit success/failure outcome.

    Exactly one of ``value`` or ``error`` is meaningful, selected by
    ``is_success``.
    """

    is_success: bool
    value: T | None = None
    error: DiaryAIError | None = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def fail(cls, error: DiaryAIError) -> "Result[T]":
        return cls(is_success=False, error=error)

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if not self.is_success:
            assert self.error is not None
            raise self.error
        return self.value  # type: ignore[return-value]

    def value_or(self, default: T) -> T:
        return self.value if self.is_success else default  # type: ignore[return-value]
