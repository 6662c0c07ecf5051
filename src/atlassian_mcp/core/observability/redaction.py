"""Sensitive data redaction utilities.

Provides pattern-based redaction for API tokens, Basic/Bearer credentials
and other secrets. Safe for use before logging or including data in error
messages. Header and body text coming back from the remote API passes
through ``redact_secrets`` before it is stored on a ``ClassifiedError``.
"""

import json
import re
from typing import Any, Dict, Final, List, Mapping, Optional, Tuple

SENSITIVE_PATTERNS: Final[List[Tuple[str, str]]] = [
    # HTTP credentials
    (r"(?i)\bbasic\s+[a-zA-Z0-9+/]{8,}={0,2}", "BASIC_AUTH"),
    (r"(?i)\bbearer\s+[a-zA-Z0-9_\-\.]{8,}", "BEARER_TOKEN"),
    # Atlassian API tokens
    (r"\bATATT[a-zA-Z0-9_\-=]{20,}", "ATLASSIAN_TOKEN"),
    # Generic key/value secrets
    (
        r"(?i)(api[_-]?token|api[_-]?key|access[_-]?token|secret|password)\s*[:=]\s*['\"]?[^\s'\",]{6,}['\"]?",
        "SECRET",
    ),
    # Private Keys
    (r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----", "PRIVATE_KEY"),
]
"""Patterns for detecting sensitive data that should be redacted.

Each tuple contains:
- regex pattern: The pattern to match sensitive data
- label: A human-readable label for the type of sensitive data
"""

_SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
    }
)

_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_token",
        "api_key",
        "apikey",
        "access_token",
        "refresh_token",
        "auth",
        "authorization",
        "credential",
        "credentials",
    }
)


def redact_secrets(
    text: str,
    *,
    patterns: Optional[List[Tuple[str, str]]] = None,
    redaction_format: str = "[REDACTED:{label}]",
) -> str:
    """Remove credentials and tokens from a text string.

    Args:
        text: Input text that may contain secrets.
        patterns: Custom patterns to use (default: SENSITIVE_PATTERNS).
        redaction_format: Format string for redaction markers (uses {label}).

    Returns:
        Text with secrets replaced by redaction markers.
    """
    if not text:
        return text
    result = text
    for pattern, label in patterns if patterns is not None else SENSITIVE_PATTERNS:
        result = re.sub(pattern, redaction_format.format(label=label), result)
    return result


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Return a copy of *headers* with sensitive values replaced by ``"****"``."""
    return {
        key: ("****" if key.lower() in _SENSITIVE_HEADERS else value)
        for key, value in headers.items()
    }


def redact_sensitive_data(data: Any, *, max_depth: int = 10) -> Any:
    """Recursively redact sensitive data from strings, dicts, and lists.

    Values under known-sensitive key names are replaced entirely; strings
    elsewhere are scanned with ``SENSITIVE_PATTERNS``.

    Example:
        >>> redact_sensitive_data({"api_token": "abc", "user": "jo"})
        {'api_token': '[REDACTED:API_TOKEN]', 'user': 'jo'}
    """
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, str):
        return redact_secrets(data)

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            key_lower = str(key).lower().replace("-", "_")
            if key_lower in _SENSITIVE_KEYS:
                result[key] = f"[REDACTED:{key_lower.upper()}]"
            else:
                result[key] = redact_sensitive_data(value, max_depth=max_depth - 1)
        return result

    if isinstance(data, (list, tuple)):
        items = [redact_sensitive_data(item, max_depth=max_depth - 1) for item in data]
        return type(data)(items) if isinstance(data, tuple) else items

    return data


def redact_for_logging(data: Any, max_length: int = 1000) -> str:
    """Redact and serialize data for a log line, truncated to *max_length*.

    Example:
        >>> logger.debug(f"Request params: {redact_for_logging(params)}")
    """
    redacted = redact_sensitive_data(data)
    try:
        text = json.dumps(redacted, default=str)
    except (TypeError, ValueError):
        text = str(redacted)
    if len(text) > max_length:
        return text[:max_length] + "... [truncated]"
    return text
