"""MCP tool decorator with observability.

Provides @mcp_tool, which adds logging, metrics and an audit trail around
every async tool handler and binds a correlation ID for the call.
"""

import functools
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from atlassian_mcp.core.context import (
    generate_correlation_id,
    get_correlation_id,
    sync_request_context,
)
from atlassian_mcp.core.observability.audit import _audit
from atlassian_mcp.core.observability.metrics import _metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


def mcp_tool(
    tool_name: Optional[str] = None, emit_metrics: bool = True, audit: bool = True
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator for async MCP tool handlers with observability.

    Automatically:
    - Binds a correlation ID (``tool_<ulid>``) unless one is already set
    - Logs tool invocations
    - Emits latency and status metrics
    - Creates audit log entries

    A handler that returns an error envelope (``success: False``) is
    recorded as a failed invocation even though it did not raise.

    Args:
        tool_name: Override tool name (defaults to function name)
        emit_metrics: Whether to emit metrics
        audit: Whether to create audit log entries
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = tool_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            existing_corr_id = get_correlation_id()
            if existing_corr_id:
                return await _invoke(existing_corr_id, *args, **kwargs)
            with sync_request_context(correlation_id=generate_correlation_id(prefix="tool")) as corr_id:
                return await _invoke(corr_id, *args, **kwargs)

        async def _invoke(_corr_id: str, *args: Any, **kwargs: Any) -> T:
            start = time.perf_counter()
            success = True
            error_msg = None
            logger.debug(f"Tool {name} invoked", extra={"tool": name, "kwargs_keys": list(kwargs.keys())})
            try:
                result = await func(*args, **kwargs)
                if isinstance(result, dict) and result.get("success") is False:
                    success = False
                    error_msg = result.get("error")
                return result
            except Exception as e:
                success = False
                error_msg = str(e)
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000

                if emit_metrics:
                    labels = {"tool": name, "status": "success" if success else "error"}
                    _metrics.counter("tool.invocations", labels=labels)
                    _metrics.timer("tool.latency", duration_ms, labels={"tool": name})

                if audit:
                    _audit.tool_invocation(
                        tool_name=name,
                        success=success,
                        duration_ms=round(duration_ms, 2),
                        error=error_msg,
                        correlation_id=_corr_id,
                    )

        return wrapper

    return decorator
