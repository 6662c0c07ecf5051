"""
Observability utilities for atlassian-mcp.

Provides metrics collection, audit logging, redaction and the tool
decorator used by every registered MCP tool. Example:

    from mcp.server.fastmcp import FastMCP
    from atlassian_mcp.core.observability import mcp_tool, audit_log

    mcp = FastMCP("atlassian-mcp")

    @mcp.tool()
    @mcp_tool(tool_name="search_issues")
    async def search_issues(jql: str) -> dict:
        ...
"""

from atlassian_mcp.core.observability.audit import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
    audit_log,
)
from atlassian_mcp.core.observability.decorators import mcp_tool
from atlassian_mcp.core.observability.metrics import (
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics,
)
from atlassian_mcp.core.observability.redaction import (
    SENSITIVE_PATTERNS,
    redact_for_logging,
    redact_headers,
    redact_secrets,
    redact_sensitive_data,
)

__all__ = [
    # Metrics
    "Metric",
    "MetricType",
    "MetricsCollector",
    "get_metrics",
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "audit_log",
    # Redaction
    "SENSITIVE_PATTERNS",
    "redact_for_logging",
    "redact_headers",
    "redact_secrets",
    "redact_sensitive_data",
    # Decorators
    "mcp_tool",
]
