"""Coded application errors and their user-facing renderings.

A ``WPManagerError`` is built from a registry entry so the HTTP layer and
the CLI show the same message and remediation for the same failure:

    raise WPManagerError.from_code("E-2001", url=raw_url)
"""

from dataclasses import dataclass, field
from typing import Any

from wpmanager.errors.registry import get_error


class _KeepMissing(dict):
    """Leave ``{name}`` in place when a template value is not supplied."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


@dataclass
class WPManagerError(Exception):
    """Application error carrying a registry code.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: What the user can do about it.
        is_retryable: Whether retrying without user action may succeed.
        details: Extra context for API consumers (never secrets).
    """

    code: str
    message: str
    remediation: str
    is_retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **context: Any) -> "WPManagerError":
        """Build an error from a registry code.

        Template placeholders are filled from ``context``; unknown ones
        stay as written. A ``details`` mapping in ``context`` is stored on
        the error instead of being substituted.
        """
        details = context.pop("details", None)
        details = details if isinstance(details, dict) else {}

        entry = get_error(code)
        if entry is None:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Contact support.",
                details=details,
            )

        values = _KeepMissing(context)
        return cls(
            code=entry.code,
            message=entry.message_template.format_map(values),
            remediation=entry.remediation.format_map(values),
            is_retryable=entry.is_retryable,
            details=details,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON body used by the API error handlers."""
        return {
            "error_code": self.code,
            "message": self.message,
            "remediation": self.remediation,
            "details": self.details or None,
        }


def format_error(error: WPManagerError, include_remediation: bool = True) -> str:
    """Render an error for terminal output."""
    text = str(error)
    if include_remediation:
        text += f"\n  Action: {error.remediation}"
    return text
