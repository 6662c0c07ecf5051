"""
Generic error helpers for MCP tool responses.

Provides the validation helper tool handlers use for bad arguments that
never reach the remote API.
Remote API failures are converted by ``core.errors.error_to_response``.
"""

from typing import Any, Mapping, Optional

from atlassian_mcp.core.responses.builders import error_response
from atlassian_mcp.core.responses.types import ErrorCode, ErrorType, ToolResponse


def validation_error(
    message: str,
    *,
    field: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    remediation: Optional[str] = None,
    request_id: Optional[str] = None,
) -> ToolResponse:
    """Create a validation error response (HTTP 400 analog).

    Args:
        message: Human-readable description of the validation failure.
        field: The field that failed validation.
        details: Additional context (e.g., constraint violated, value received).
        remediation: Guidance on how to fix the input.
        request_id: Correlation identifier.

    Example:
        >>> validation_error(
        ...     "Invalid page_id format. Page ID should be numeric",
        ...     field="page_id",
        ... )
    """
    error_details = dict(details) if details else {}
    if field and "field" not in error_details:
        error_details["field"] = field

    return error_response(
        message,
        error_code=ErrorCode.VALIDATION_ERROR,
        error_type=ErrorType.VALIDATION,
        details=error_details if error_details else None,
        remediation=remediation,
        request_id=request_id,
    )
