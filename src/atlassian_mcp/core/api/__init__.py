"""Resilient request layer for the Atlassian REST APIs.

Usage:
    from atlassian_mcp.core.api import Client, RequestDescriptor

    async with Client(url, email, token, service="jira") as client:
        data = await client.get("/rest/api/{version}/myself")
"""

from atlassian_mcp.core.api.cache import CacheEntry, ResponseCache, make_cache_key
from atlassian_mcp.core.api.classifier import (
    classify_exception,
    classify_response,
    extract_error_message,
    kind_for_status,
    parse_retry_after,
)
from atlassian_mcp.core.api.client import (
    CONFLUENCE,
    JIRA,
    SERVICE_VERSIONS,
    Client,
    basic_auth_header,
    versions_for,
)
from atlassian_mcp.core.api.executor import RequestExecutor
from atlassian_mcp.core.api.models import (
    ClientSettings,
    ClockFunc,
    RequestDescriptor,
    RetryPolicy,
    SleepFunc,
)
from atlassian_mcp.core.api.rate_limit import RateLimiter
from atlassian_mcp.core.api.versions import (
    ServiceVersions,
    VersionNegotiator,
    VersionState,
    VersionStatus,
)

__all__ = [
    # Models
    "ClientSettings",
    "ClockFunc",
    "RequestDescriptor",
    "RetryPolicy",
    "SleepFunc",
    # Components
    "CacheEntry",
    "RateLimiter",
    "RequestExecutor",
    "ResponseCache",
    "make_cache_key",
    # Classification
    "classify_exception",
    "classify_response",
    "extract_error_message",
    "kind_for_status",
    "parse_retry_after",
    # Versions
    "ServiceVersions",
    "VersionNegotiator",
    "VersionState",
    "VersionStatus",
    # Client
    "CONFLUENCE",
    "JIRA",
    "SERVICE_VERSIONS",
    "Client",
    "basic_auth_header",
    "versions_for",
]
