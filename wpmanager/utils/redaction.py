"""Secret redaction utility for safe logging and persisted metadata.

Prevents credential leakage in logs, activity metadata, and API error
responses. Sensitive keys are detected by case-insensitive substring
matching; nested dicts and lists of dicts are handled recursively.
"""

import re
from typing import Any

# Substring patterns matched case-insensitively against dict keys
_DEFAULT_SENSITIVE_PATTERNS = frozenset({
    "secret", "token", "authorization", "api_key", "apikey", "password",
    "credential", "client_secret", "access_token", "refresh_token",
})

# Keys whose entire value is redacted (regardless of content type)
_CONTAINER_KEYS = frozenset({"credentials", "headers", "auth"})

REDACTED = "***REDACTED***"


def _is_sensitive_key(key: str, sensitive_patterns: frozenset[str]) -> bool:
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in sensitive_patterns)


def redact_sensitive(
    obj: Any,
    sensitive_patterns: frozenset[str] = _DEFAULT_SENSITIVE_PATTERNS,
) -> Any:
    """Redact sensitive values from a JSON-like structure.

    Args:
        obj: Dict, list, or scalar to redact (not mutated, a copy is returned).
        sensitive_patterns: Substring patterns whose matching keys' values
            are replaced. Matching is case-insensitive.

    Returns:
        Copy of ``obj`` with sensitive values replaced by '***REDACTED***'.
    """
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            key_str = str(key)
            if key_str.lower() in _CONTAINER_KEYS or _is_sensitive_key(
                key_str, sensitive_patterns
            ):
                result[key] = REDACTED
            else:
                result[key] = redact_sensitive(value, sensitive_patterns)
        return result
    if isinstance(obj, list):
        return [redact_sensitive(item, sensitive_patterns) for item in obj]
    return obj


_SENSITIVE_KEYWORDS = (
    r"secret|token|password|api_key|apikey|client_secret|"
    r"access_token|refresh_token|authorization|credential"
)
_SENSITIVE_VALUE_PATTERNS = re.compile(
    r"(?i)"
    r"(?:"
    # Authorization: Basic/Bearer <value>
    r"Authorization\s*:\s*(?:Bearer|Basic)\s+\S+"
    r"|"
    # JSON-style "key": "value"
    r'"(?:' + _SENSITIVE_KEYWORDS + r')"\s*:\s*"[^"]*"'
    r"|"
    # key = "quoted value"
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\"[^\"]*\""
    r"|"
    # key=value (unquoted, consumes until whitespace/end)
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\S+"
    r")",
)


def sanitize_error_message(msg: str | None, max_length: int = 2000) -> str | None:
    """Sanitize an error message for logging or DB persistence.

    Redacts sensitive-looking key=value pairs and truncates to max_length.

    Args:
        msg: Error message to sanitize (None passes through).
        max_length: Maximum length of the sanitized message.

    Returns:
        Sanitized and truncated message, or None.
    """
    if msg is None:
        return None
    sanitized = _SENSITIVE_VALUE_PATTERNS.sub(REDACTED, msg)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."
    return sanitized
