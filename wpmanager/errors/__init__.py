"""Error handling framework for WP AI Manager.

This package provides:
- Error code registry with E-XXXX format codes
- WPManagerError, the structured application error
- Typed domain exceptions mapped to HTTP status codes

Error categories:
- E-1xxx: Configuration errors
- E-2xxx: Validation errors
- E-3xxx: Remote WordPress site errors
- E-4xxx: System/internal errors
- E-5xxx: Credential and authentication errors
"""

from wpmanager.errors.domain import (
    AccessDeniedError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from wpmanager.errors.formatter import WPManagerError, format_error
from wpmanager.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Formatter
    "WPManagerError",
    "format_error",
    # Domain
    "DomainError",
    "NotFoundError",
    "AccessDeniedError",
    "ValidationError",
]
