"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Each exception carries an ``error_code`` so the application layer can turn
it into a structured failure result instead of letting it escape to callers.
"""

from typing import Optional, Any

from casewatch.config import ErrorCode


class ApplicationException(Exception):
    """Base exception for all application errors."""

    error_code: Optional[str] = None

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    error_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, errors: Optional[list] = None, details: Optional[dict] = None):
        self.errors = errors or [message]
        super().__init__(message, details or {"errors": self.errors})


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    error_code = ErrorCode.RECORD_NOT_FOUND

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class NoApplicableConfigurationException(DomainException):
    """Raised when no active SLA configuration matches a case."""

    error_code = ErrorCode.NO_APPLICABLE_CONFIGURATION

    def __init__(
        self,
        category: Optional[str] = None,
        case_type: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.category = category
        self.case_type = case_type
        super().__init__(
            "No active SLA configuration applies; define at least a global default",
            details or {"category": category, "case_type": case_type}
        )


class DuplicateTrackingRecordException(DomainException):
    """Raised when a tracking record already exists for a case."""

    error_code = ErrorCode.DUPLICATE_TRACKING_RECORD

    def __init__(self, case_id: str, details: Optional[dict] = None):
        self.case_id = case_id
        super().__init__(
            f"SLA tracking record already exists for case '{case_id}'",
            details or {"case_id": case_id}
        )


class ConcurrencyConflictException(RepositoryException):
    """Raised when a version-checked write keeps losing to concurrent writers."""

    error_code = ErrorCode.CONCURRENCY_CONFLICT

    def __init__(self, resource_type: str, resource_id: str, attempts: int, details: Optional[Any] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.attempts = attempts
        super().__init__(
            f"{resource_type} '{resource_id}' was modified concurrently ({attempts} attempts)",
            details or {"resource_id": resource_id, "attempts": attempts}
        )

