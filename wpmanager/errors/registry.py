"""Error code registry with E-XXXX format codes.

Errors are organized into categories:
- E-1xxx: Configuration errors
- E-2xxx: Validation errors
- E-3xxx: Remote WordPress site errors
- E-4xxx: System/internal errors
- E-5xxx: Credential and authentication errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    CONFIGURATION = "configuration"  # E-1xxx
    VALIDATION = "validation"  # E-2xxx
    SITE = "site"  # E-3xxx
    SYSTEM = "system"  # E-4xxx
    AUTH = "auth"  # E-5xxx


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Configuration errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.CONFIGURATION,
        title="No AI Provider Configured",
        message_template="No AI services are configured.",
        remediation="Set OPENAI_API_KEY, GEMINI_API_KEY or ANTHROPIC_API_KEY and restart the server.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.CONFIGURATION,
        title="AI Provider Unavailable",
        message_template="AI service '{provider}' is not available.",
        remediation="Check the API key for this provider or choose one of: {available}.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.CONFIGURATION,
        title="Invalid Configuration",
        message_template="Invalid configuration: {detail}",
        remediation="Correct the setting in your environment or wpmanager.yaml and restart.",
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Invalid Site URL",
        message_template="'{url}' is not a valid http(s) site URL.",
        remediation="Enter the full site address, for example https://example.com.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Unsupported Action",
        message_template="Action type '{action_type}' is not supported.",
        remediation="Rephrase the request using a supported operation.",
    ),
    # Remote site errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.SITE,
        title="Site Unreachable",
        message_template="WordPress site could not be reached: {error}",
        remediation="Check that the site is online and the URL is correct.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.SITE,
        title="Site Request Failed",
        message_template="WordPress REST API request failed: {error}",
        remediation="Review the site's REST API settings and user permissions.",
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Internal Error",
        message_template="An unexpected error occurred.",
        remediation="Retry the request. Contact support if the issue persists.",
        is_retryable=True,
    ),
    # Credential errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Credential Unavailable",
        message_template="Failed to access stored credential.",
        remediation="Reconnect the site or re-enter the secret. The encryption key may have changed.",
    ),
    "E-5002": ErrorCode(
        code="E-5002",
        category=ErrorCategory.AUTH,
        title="Site Authentication Failed",
        message_template="WordPress rejected the supplied credentials: {error}",
        remediation="Create a new application password in WordPress and reconnect the site.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Look up an error code in the registry.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Return all registered errors in a category."""
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
