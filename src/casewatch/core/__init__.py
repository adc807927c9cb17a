"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from casewatch.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    NoApplicableConfigurationException,
    DuplicateTrackingRecordException,
    ConcurrencyConflictException,
)
from casewatch.core.result import ServiceResult, ServiceError
from casewatch.core.clock import utc_now, ensure_utc

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "NoApplicableConfigurationException",
    "DuplicateTrackingRecordException",
    "ConcurrencyConflictException",
    "ServiceResult",
    "ServiceError",
    "utc_now",
    "ensure_utc",
]
