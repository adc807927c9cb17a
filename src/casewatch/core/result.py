"""
Service Results
===============

Structured success/failure values returned by application services.

Expected business-rule violations travel back to the caller inside a
``ServiceResult`` rather than as raised exceptions.
"""

from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from casewatch.core.exceptions import ApplicationException

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceError:
    """Why an operation failed."""
    code: str
    message: str
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of an application service operation."""

    succeeded: bool
    value: Optional[T] = None
    error: Optional[ServiceError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "ServiceResult[T]":
        return cls(succeeded=True, value=value)

    @classmethod
    def failure(cls, code: str, message: str, details: Optional[dict] = None) -> "ServiceResult[T]":
        return cls(
            succeeded=False,
            error=ServiceError(code=code, message=message, details=details or {})
        )

    @classmethod
    def from_exception(cls, exc: ApplicationException) -> "ServiceResult[T]":
        """Build a failure from an exception that carries an error code."""
        if exc.error_code is None:
            raise ValueError(f"{type(exc).__name__} has no error code") from exc
        return cls.failure(exc.error_code, exc.message, exc.details)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None
