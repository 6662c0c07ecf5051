"""
Standard response contracts for MCP tool operations.

Callers can use ``from atlassian_mcp.core.responses import success_response``
or import from canonical sub-module paths like ``responses.builders``.

Sub-modules:
    types           - ErrorCode, ErrorType, ToolResponse, _build_meta
    builders        - success_response, error_response
    errors_generic  - validation_error
    sanitization    - sanitize_error_message
"""

from atlassian_mcp.core.responses.types import (  # noqa: F401
    ErrorCode,
    ErrorType,
    ToolResponse,
    _build_meta,
)
from atlassian_mcp.core.responses.builders import (  # noqa: F401
    error_response,
    success_response,
)
from atlassian_mcp.core.responses.errors_generic import (  # noqa: F401
    validation_error,
)
from atlassian_mcp.core.responses.sanitization import sanitize_error_message  # noqa: F401

__all__ = [
    "ErrorCode",
    "ErrorType",
    "ToolResponse",
    "error_response",
    "sanitize_error_message",
    "success_response",
    "validation_error",
]
