"""Shared helpers for Jira and Confluence tool handlers.

Converts service-layer results and exceptions into response envelopes so
handlers never raise into the MCP layer.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Dict, List, MutableMapping, Optional

from atlassian_mcp.core.errors import ClassifiedError, error_to_response
from atlassian_mcp.core.responses import (
    ErrorCode,
    ErrorType,
    error_response,
    sanitize_error_message,
    success_response,
    validation_error,
)
from atlassian_mcp.core.content import truncate_text

logger = logging.getLogger(__name__)


async def run_tool(
    tool_name: str,
    operation: Callable[[], Awaitable[Dict[str, Any]]],
    *,
    max_text_length: Optional[int] = None,
    text_fields: tuple = (),
) -> dict:
    """Await *operation* and wrap its result in a response envelope.

    Top-level string fields named in *text_fields* are cut to
    *max_text_length* with a ``meta.warnings`` entry.
    """
    try:
        data = await operation()
    except ClassifiedError as exc:
        logger.info("%s failed: %s", tool_name, exc.message)
        return error_to_response(exc)
    except ValueError as exc:
        return asdict(validation_error(str(exc)))
    except Exception as exc:
        logger.exception("%s failed with unexpected error: %s", tool_name, exc)
        return asdict(
            error_response(
                f"{tool_name} failed: {sanitize_error_message(exc, context=tool_name)}",
                error_code=ErrorCode.INTERNAL_ERROR,
                error_type=ErrorType.INTERNAL,
                remediation="Check configuration and logs for details.",
                details={"error_type": exc.__class__.__name__},
            )
        )

    warnings: List[str] = []
    if max_text_length is not None:
        for field_name in text_fields:
            truncate_field(data, field_name, max_text_length, warnings)
    return asdict(success_response(data=data, warnings=warnings or None))


def truncate_field(
    container: MutableMapping[str, Any],
    key: str,
    max_length: int,
    warnings: List[str],
) -> None:
    value = container.get(key)
    if not isinstance(value, str):
        return
    text, truncated = truncate_text(value, max_length)
    if truncated:
        container[key] = text
        container[f"{key}_truncated"] = True
        warnings.append(f"{key} truncated to {max_length} characters (original length {len(value)})")


def invalid(message: str, field: str, remediation: Optional[str] = None) -> dict:
    return asdict(validation_error(message, field=field, remediation=remediation))
