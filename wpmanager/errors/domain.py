"""Typed domain exceptions for API error mapping.

Routes and the application's exception handlers map these to HTTP
status codes instead of matching on message strings.

Usage:
    # In service layer
    raise NotFoundError("Site", site_id)

    # In main.py exception handler
    NotFoundError -> 404, AccessDeniedError -> 403, ValidationError -> 400
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} not found")
        self.resource_type = resource_type
        self.identifier = identifier


class AccessDeniedError(DomainError):
    """Resource belongs to another user. Maps to HTTP 403."""

    def __init__(self, resource_type: str) -> None:
        super().__init__("Access denied")
        self.resource_type = resource_type


class ValidationError(DomainError):
    """Validation failure. Maps to HTTP 400."""
