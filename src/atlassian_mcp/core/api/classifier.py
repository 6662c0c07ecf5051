"""Failure classification for the request layer.

Turns heterogeneous failure signals (non-2xx responses, transport
exceptions, timeouts, unparseable bodies) into ``ClassifiedError`` records
from the closed ``ErrorKind`` taxonomy.

Pure parsing helpers:
    - parse_retry_after(response) -> Optional[float]
    - extract_error_message(response) -> Optional[str]
    - kind_for_status(status) -> ErrorKind

Classifiers:
    - classify_response(response) -> ClassifiedError
    - classify_exception(exc) -> ClassifiedError
    - malformed_body_error(response, exc) -> ClassifiedError

SECURITY: every server-provided string is passed through ``redact_secrets``
before it is placed on an error.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import httpx

from atlassian_mcp.core.errors.api import ClassifiedError, ErrorKind
from atlassian_mcp.core.observability.redaction import redact_secrets

logger = logging.getLogger(__name__)

# Raw body text kept when the server diagnostic is not JSON
MAX_DIAGNOSTIC_CHARS = 500
# Raw body text kept in error details for debugging
MAX_DETAIL_BODY_CHARS = 1000

_KIND_LABELS: Dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "Request timed out",
    ErrorKind.NETWORK_ERROR: "Network error",
    ErrorKind.RATE_LIMITED: "Rate limit exceeded",
    ErrorKind.SERVER_ERROR: "Server error",
    ErrorKind.AUTH_ERROR: "Authentication failed",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.GONE: "API endpoint no longer available",
    ErrorKind.BAD_REQUEST: "Bad request",
    ErrorKind.UNKNOWN: "Unexpected API response",
}

_KIND_HINTS: Dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMITED: "Please try again later.",
    ErrorKind.SERVER_ERROR: "The service is temporarily unavailable.",
    ErrorKind.AUTH_ERROR: "Please check your API credentials.",
    ErrorKind.NOT_FOUND: "Please check the ID or URL.",
    ErrorKind.GONE: "The endpoint might have been removed or renamed.",
}


# ---------------------------------------------------------------------------
# Pure parsing helpers
# ---------------------------------------------------------------------------


def kind_for_status(status: int) -> ErrorKind:
    """Map a non-2xx HTTP status to its taxonomy kind."""
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status >= 500:
        return ErrorKind.SERVER_ERROR
    if status in (401, 403):
        return ErrorKind.AUTH_ERROR
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 410:
        return ErrorKind.GONE
    if status in (400, 422):
        return ErrorKind.BAD_REQUEST
    return ErrorKind.UNKNOWN


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Parse the ``Retry-After`` header from an HTTP response.

    Handles numeric seconds and RFC 7231 HTTP-dates.

    Returns:
        Seconds to wait before retrying (never negative), or ``None`` if
        the header is missing or unparseable.
    """
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return max(0.0, float(retry_after))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _diagnostic_from_json(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None

    error_messages = data.get("errorMessages")
    if isinstance(error_messages, list) and error_messages:
        return ", ".join(str(m) for m in error_messages)

    message = data.get("message")
    if isinstance(message, str) and message:
        return message

    errors = data.get("errors")
    if isinstance(errors, dict) and errors:
        return ", ".join(f"{field}: {msg}" for field, msg in errors.items())
    if isinstance(errors, list) and errors:
        # Confluence v2 shape: [{"status": 400, "title": "...", "detail": "..."}]
        parts = []
        for item in errors:
            if isinstance(item, dict):
                text = item.get("detail") or item.get("title") or item.get("message")
                if text:
                    parts.append(str(text))
            elif item:
                parts.append(str(item))
        if parts:
            return ", ".join(parts)

    return None


def extract_error_message(response: httpx.Response) -> Optional[str]:
    """Extract the most specific server diagnostic from an error response.

    Tries the JSON shapes ``errorMessages`` (list), ``message`` and the
    ``errors`` field map, then falls back to the first
    ``MAX_DIAGNOSTIC_CHARS`` characters of the raw body.

    Returns:
        A secret-redacted diagnostic, or ``None`` for an empty body.
    """
    text = response.text or ""
    try:
        diagnostic = _diagnostic_from_json(json.loads(text)) if text else None
    except ValueError:
        diagnostic = None

    if diagnostic is None:
        diagnostic = text.strip()[:MAX_DIAGNOSTIC_CHARS]

    return redact_secrets(diagnostic) if diagnostic else None


# ---------------------------------------------------------------------------
# Classifiers
# ---------------------------------------------------------------------------


def _request_details(response: httpx.Response) -> Dict[str, Any]:
    details: Dict[str, Any] = {"status": response.status_code}
    if response.reason_phrase:
        details["reason"] = response.reason_phrase
    try:
        request = response.request
    except RuntimeError:
        request = None
    if request is not None:
        details["method"] = request.method
        details["url"] = str(request.url.copy_with(query=None))
    return details


def classify_response(response: httpx.Response, *, service: Optional[str] = None) -> ClassifiedError:
    """Classify a non-2xx response.

    The message keeps the server's own diagnostic text, e.g.
    ``"Resource not found (404): Issue does not exist"``.
    """
    status = response.status_code
    kind = kind_for_status(status)
    label = _KIND_LABELS[kind]
    if kind is ErrorKind.AUTH_ERROR and status == 403:
        label = "Permission denied"

    diagnostic = extract_error_message(response)
    if diagnostic:
        message = f"{label} ({status}): {diagnostic}"
    else:
        hint = _KIND_HINTS.get(kind)
        message = f"{label} ({status}). {hint}" if hint else f"{label} ({status})."

    details = _request_details(response)
    if service:
        details["service"] = service
    body = response.text
    if body:
        details["body"] = redact_secrets(body[:MAX_DETAIL_BODY_CHARS])

    retry_after = parse_retry_after(response) if kind is ErrorKind.RATE_LIMITED else None

    return ClassifiedError(
        kind,
        message,
        http_status=status,
        details=details,
        retry_after=retry_after,
    )


def malformed_body_error(response: httpx.Response, exc: Exception) -> ClassifiedError:
    """Classify a 2xx response whose JSON body could not be parsed."""
    details = _request_details(response)
    details["body"] = redact_secrets((response.text or "")[:MAX_DETAIL_BODY_CHARS])
    details["parse_error"] = str(exc)
    return ClassifiedError(
        ErrorKind.BAD_REQUEST,
        f"Malformed response body ({response.status_code}): {exc}",
        http_status=response.status_code,
        details=details,
    )


def classify_exception(
    exc: BaseException,
    *,
    url: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
) -> ClassifiedError:
    """Classify an exception raised while performing an attempt.

    ``ClassifiedError`` instances are returned unchanged.
    """
    if isinstance(exc, ClassifiedError):
        return exc

    details: Dict[str, Any] = {"exception": type(exc).__name__}
    if url:
        details["url"] = url

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
            message = f"Request timed out after {timeout_seconds:g}s"
        else:
            message = "Request timed out"
        return ClassifiedError(ErrorKind.TIMEOUT, message, details=details)

    if isinstance(exc, (httpx.NetworkError, httpx.ProxyError, httpx.RemoteProtocolError, ConnectionError)):
        target = f" to {url}" if url else ""
        message = f"Cannot connect{target}: {redact_secrets(str(exc)) or type(exc).__name__}"
        return ClassifiedError(ErrorKind.NETWORK_ERROR, message, details=details)

    if isinstance(exc, json.JSONDecodeError):
        return ClassifiedError(ErrorKind.BAD_REQUEST, f"Malformed response body: {exc}", details=details)

    logger.debug("Unclassified request failure", exc_info=exc)
    return ClassifiedError(
        ErrorKind.UNKNOWN,
        f"Unexpected request failure: {redact_secrets(str(exc)) or type(exc).__name__}",
        details=details,
    )
