"""
Error message sanitization for MCP tool responses.

Converts unexpected exceptions to user-safe messages without exposing
internal details, logging full exception information server-side.
"""

import json
import logging

import httpx

logger = logging.getLogger(__name__)


def sanitize_error_message(
    exc: Exception,
    context: str = "",
    include_type: bool = False,
) -> str:
    """
    Convert exception to user-safe message without internal details.

    Args:
        exc: The exception to sanitize
        context: Optional context for logging (e.g., "get_issue_details")
        include_type: Whether to include exception type name in message

    Returns:
        User-safe error message without file paths, stack traces, or credentials
    """
    if context:
        logger.debug(f"Error in {context}: {exc}", exc_info=True)
    else:
        logger.debug(f"Error: {exc}", exc_info=True)

    type_name = type(exc).__name__

    if isinstance(exc, json.JSONDecodeError):
        return "Invalid JSON format"
    if isinstance(exc, httpx.InvalidURL):
        return "Invalid URL for remote API request"
    if isinstance(exc, (KeyError, TypeError, AttributeError)):
        suffix = f" ({type_name})" if include_type else ""
        return f"Unexpected response shape from remote API{suffix}"
    if isinstance(exc, ValueError):
        suffix = f" ({type_name})" if include_type else ""
        return f"Invalid value provided{suffix}"
    if isinstance(exc, ConnectionError):
        return "Connection failed - service may be unavailable"

    suffix = f" ({type_name})" if include_type else ""
    return f"An internal error occurred{suffix}"
