"""Error-to-ErrorCode mapping registry.

Provides a centralized mapping from exceptions to (ErrorCode, ErrorType)
tuples, enabling consistent error response generation across tool handlers.
``ClassifiedError`` is mapped by its ``kind`` tag rather than its type.

Usage:
    from atlassian_mcp.core.errors.base import error_to_response

    try:
        data = await client.execute(descriptor)
    except Exception as e:
        result = error_to_response(e)
        if result is not None:
            return result
        raise  # Unknown error, re-raise
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Tuple, Type

from atlassian_mcp.core.errors.api import ClassifiedError, ErrorKind
from atlassian_mcp.core.errors.configuration import ConfigurationError
from atlassian_mcp.core.responses.builders import error_response
from atlassian_mcp.core.responses.types import ErrorCode, ErrorType

ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    ConfigurationError: (ErrorCode.CONFIGURATION_ERROR, ErrorType.VALIDATION),
}

KIND_MAPPINGS: Dict[ErrorKind, Tuple[ErrorCode, ErrorType, str]] = {
    ErrorKind.TIMEOUT: (
        ErrorCode.UPSTREAM_TIMEOUT,
        ErrorType.UNAVAILABLE,
        "The remote API did not answer in time. Retry later or raise the API timeout.",
    ),
    ErrorKind.NETWORK_ERROR: (
        ErrorCode.NETWORK_ERROR,
        ErrorType.UNAVAILABLE,
        "Check network connectivity and the configured base URL.",
    ),
    ErrorKind.RATE_LIMITED: (
        ErrorCode.RATE_LIMIT_EXCEEDED,
        ErrorType.RATE_LIMIT,
        "Rate limit exceeded. Wait before retrying or raise the API rate limit delay.",
    ),
    ErrorKind.SERVER_ERROR: (
        ErrorCode.UPSTREAM_ERROR,
        ErrorType.UNAVAILABLE,
        "The service is temporarily unavailable. Retry later.",
    ),
    ErrorKind.AUTH_ERROR: (
        ErrorCode.UNAUTHORIZED,
        ErrorType.AUTHENTICATION,
        "Check the configured email and API token.",
    ),
    ErrorKind.NOT_FOUND: (
        ErrorCode.NOT_FOUND,
        ErrorType.NOT_FOUND,
        "Check the ID or key of the requested resource.",
    ),
    ErrorKind.GONE: (
        ErrorCode.RESOURCE_GONE,
        ErrorType.GONE,
        "The endpoint has been removed from this API version.",
    ),
    ErrorKind.BAD_REQUEST: (
        ErrorCode.VALIDATION_ERROR,
        ErrorType.VALIDATION,
        "Check the request parameters (query syntax, field names, formats).",
    ),
    ErrorKind.UNKNOWN: (
        ErrorCode.UPSTREAM_ERROR,
        ErrorType.INTERNAL,
        "Unexpected response from the remote API. Check the server logs.",
    ),
}


def _classified_to_response(exc: ClassifiedError) -> dict:
    code, error_type, remediation = KIND_MAPPINGS[exc.kind]
    if exc.kind is ErrorKind.AUTH_ERROR and exc.http_status == 403:
        code, error_type = ErrorCode.FORBIDDEN, ErrorType.AUTHORIZATION
        remediation = "Permission denied. Request access to this resource."

    data: Dict[str, Any] = {"error_kind": exc.kind.value, "recoverable": exc.recoverable}
    if exc.http_status is not None:
        data["http_status"] = exc.http_status

    rate_limit = None
    if exc.retry_after is not None:
        data["retry_after_seconds"] = exc.retry_after
        rate_limit = {"retry_after": exc.retry_after}

    return asdict(
        error_response(
            exc.message,
            data=data,
            error_code=code,
            error_type=error_type,
            remediation=remediation,
            details=exc.details,
            rate_limit=rate_limit,
        )
    )


def error_to_response(exc: Exception) -> Optional[dict]:
    """Convert a known exception to a standard error_response dict, or None if unknown.

    ``ClassifiedError`` instances are mapped through ``KIND_MAPPINGS``; other
    exceptions are looked up by their *exact* type in ``ERROR_MAPPINGS``.

    Args:
        exc: The exception to convert.

    Returns:
        A dict suitable for MCP tool response, or None if the exception type
        is not registered.
    """
    if isinstance(exc, ClassifiedError):
        return _classified_to_response(exc)

    mapping = ERROR_MAPPINGS.get(type(exc))
    if mapping is None:
        return None

    code, error_type = mapping
    details = None
    setting = getattr(exc, "setting", None)
    if setting:
        details = {"setting": setting}
    return asdict(error_response(str(exc), error_code=code, error_type=error_type, details=details))
