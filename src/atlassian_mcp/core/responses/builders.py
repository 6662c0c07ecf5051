"""
Response builder functions for MCP tool operations.

Provides success_response() and error_response(), the two constructors
every Jira and Confluence tool uses to build its envelope.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from atlassian_mcp.core.responses.types import (
    ErrorCode,
    ErrorType,
    ToolResponse,
    _build_meta,
)


def _enum_value(value: Union[Enum, str]) -> str:
    return value.value if isinstance(value, Enum) else value


def success_response(
    data: Optional[Mapping[str, Any]] = None,
    *,
    warnings: Optional[Sequence[str]] = None,
    request_id: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
    **fields: Any,
) -> ToolResponse:
    """Create a standardized success response.

    Args:
        data: Optional mapping used as the base payload.
        warnings: Non-fatal issues to surface in ``meta.warnings``
            (for example a truncated page body).
        request_id: Correlation identifier propagated through logs.
        meta: Arbitrary extra metadata to merge into ``meta``.
        **fields: Additional payload fields (shorthand for ``data.update``).

    Example:
        >>> success_response({"issues": issues}, total=len(issues))
    """
    payload: Dict[str, Any] = {}
    if data:
        payload.update(dict(data))
    if fields:
        payload.update(fields)

    meta_payload = _build_meta(request_id=request_id, warnings=warnings, extra=meta)
    return ToolResponse(success=True, data=payload, error=None, meta=meta_payload)


def error_response(
    message: str,
    *,
    data: Optional[Mapping[str, Any]] = None,
    error_code: Optional[Union[ErrorCode, str]] = None,
    error_type: Optional[Union[ErrorType, str]] = None,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    request_id: Optional[str] = None,
    rate_limit: Optional[Mapping[str, Any]] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> ToolResponse:
    """Create a standardized error response.

    ``error_code`` and ``error_type`` default to ``INTERNAL_ERROR`` /
    ``internal``. Keys already present in *data* are not overwritten.

    Args:
        message: Human-readable description of the failure.
        data: Optional mapping with additional machine-readable context.
        error_code: Canonical error code (``ErrorCode`` enum or string).
        error_type: Error category for routing (``ErrorType`` enum or string).
        remediation: User-facing guidance on how to fix the issue.
        details: Nested structure describing the failure.
        request_id: Correlation identifier propagated through logs.
        rate_limit: Retry-After state to help clients back off correctly.
        meta: Arbitrary extra metadata to merge into ``meta``.

    Example:
        >>> error_response(
        ...     "Issue PROJ-123 does not exist",
        ...     error_code=ErrorCode.NOT_FOUND,
        ...     error_type=ErrorType.NOT_FOUND,
        ...     remediation="Check the issue key",
        ... )
    """
    payload: Dict[str, Any] = {}
    if data:
        payload.update(dict(data))

    payload.setdefault("error_code", _enum_value(error_code or ErrorCode.INTERNAL_ERROR))
    payload.setdefault("error_type", _enum_value(error_type or ErrorType.INTERNAL))
    if remediation is not None:
        payload.setdefault("remediation", remediation)
    if details:
        payload.setdefault("details", dict(details))

    meta_payload = _build_meta(request_id=request_id, rate_limit=rate_limit, extra=meta)
    return ToolResponse(success=False, data=payload, error=message, meta=meta_payload)
