"""Per-service API client.

A ``Client`` owns everything the request layer keeps between calls for
one service: the ``httpx.AsyncClient``, the response cache, the rate
limiter and the version negotiator. Collaborators receive the client by
reference; nothing here is module-global.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

import httpx

from atlassian_mcp import __version__
from atlassian_mcp.core.api.cache import ResponseCache
from atlassian_mcp.core.api.executor import RequestExecutor
from atlassian_mcp.core.api.models import (
    ClientSettings,
    ClockFunc,
    RequestDescriptor,
    RetryPolicy,
    SleepFunc,
)
from atlassian_mcp.core.api.rate_limit import RateLimiter
from atlassian_mcp.core.api.versions import ServiceVersions, VersionNegotiator, VersionState

if TYPE_CHECKING:
    from atlassian_mcp.config.services import ServiceConfig

logger = logging.getLogger(__name__)

JIRA = "jira"
CONFLUENCE = "confluence"

SERVICE_VERSIONS: Dict[str, ServiceVersions] = {
    JIRA: ServiceVersions(default="3", fallback="2"),
    CONFLUENCE: ServiceVersions(
        default="2",
        fallback="1",
        probe_path="/wiki/api/v2/spaces",
        probe_params={"limit": 1},
    ),
}


def versions_for(service: str, api_version: Optional[str] = None) -> ServiceVersions:
    """Version table for *service*, adjusted for a configured ``api_version``.

    Pinning Jira to ``"2"`` starts at the older generation with no
    fallback tier left. Confluence's ``v1``/``v2``/``auto`` setting pins
    the probe outcome instead (see ``Client.from_config``).
    """
    try:
        versions = SERVICE_VERSIONS[service]
    except KeyError:
        raise ValueError(f"Unknown service: {service!r}") from None
    if service == JIRA and api_version and api_version != versions.default:
        return ServiceVersions(default=api_version, fallback=None)
    return versions


def basic_auth_header(email: str, api_token: str) -> str:
    """``Authorization`` value for Atlassian Cloud basic auth."""
    raw = f"{email}:{api_token}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def default_headers(email: str, api_token: str) -> Dict[str, str]:
    return {
        "Authorization": basic_auth_header(email, api_token),
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": f"atlassian-mcp/{__version__}",
    }


class Client:
    """Resilient client for one Atlassian service.

    Args:
        base_url: Site root, e.g. ``https://example.atlassian.net``.
        email: Account email used for basic auth.
        api_token: API token used for basic auth.
        service: Service name (``"jira"`` or ``"confluence"``).
        settings: Timeout, retry, pacing and cache tuning.
        versions: Version table (defaults to ``SERVICE_VERSIONS[service]``).
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        clock: Monotonic clock shared by the cache and rate limiter.
        sleep: Async sleep shared by the rate limiter and retry backoff.
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        *,
        service: str,
        settings: Optional[ClientSettings] = None,
        versions: Optional[ServiceVersions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[ClockFunc] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.service = service
        self.base_url = base_url.rstrip("/")
        self.settings = settings or ClientSettings()
        self._timeout = self.settings.timeout_ms / 1000.0

        self.http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=default_headers(email, api_token),
            timeout=httpx.Timeout(self._timeout),
            transport=transport,
            follow_redirects=True,
        )
        self.cache: Optional[ResponseCache] = None
        if self.settings.cache_enabled:
            self.cache = ResponseCache(self.settings.cache_ttl_ms / 1000.0, clock=clock)
        self.rate_limiter = RateLimiter(self.settings.rate_limit_ms / 1000.0, clock=clock, sleep=sleep)
        self.negotiator = VersionNegotiator(
            {service: versions or versions_for(service)},
            probe_func=self._probe_request,
        )
        self.executor = RequestExecutor(
            self.http,
            rate_limiter=self.rate_limiter,
            cache=self.cache,
            negotiator=self.negotiator,
            timeout_seconds=self._timeout,
            retry_policy=self.settings.retry_policy,
            sleep=sleep,
        )

    @classmethod
    def from_config(
        cls,
        service: str,
        config: "ServiceConfig",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[ClockFunc] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> "Client":
        """Build a client from a validated ``ServiceConfig``."""
        client = cls(
            config.url,
            config.email,
            config.api_token,
            service=service,
            settings=config.client_settings(),
            versions=versions_for(service, config.api_version),
            transport=transport,
            clock=clock,
            sleep=sleep,
        )
        if service == CONFLUENCE and config.api_version in ("v1", "v2"):
            client.negotiator.set_probe_result(service, config.api_version == "v2")
        return client

    async def execute(self, descriptor: RequestDescriptor, retry_policy: Optional[RetryPolicy] = None) -> Any:
        return await self.executor.execute(descriptor, retry_policy)

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        return await self.execute(RequestDescriptor("GET", path, query_params=clean, service=self.service))

    async def post(self, path: str, body: Any = None, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.execute(
            RequestDescriptor("POST", path, query_params=params or {}, body=body, service=self.service)
        )

    async def put(self, path: str, body: Any = None, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.execute(
            RequestDescriptor("PUT", path, query_params=params or {}, body=body, service=self.service)
        )

    async def delete(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.execute(RequestDescriptor("DELETE", path, query_params=params or {}, service=self.service))

    async def probe(self) -> bool:
        """Whether the newer API surface answers (checked once per process)."""
        return await self.negotiator.probe(self.service)

    def resolve_version(self) -> str:
        return self.negotiator.resolve_version(self.service)

    def version_state(self) -> VersionState:
        return self.negotiator.state(self.service)

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    async def _probe_request(self, service: str, versions: ServiceVersions) -> bool:
        # Single paced attempt; failures of any kind mean "not available".
        await self.rate_limiter.wait()
        response = await asyncio.wait_for(
            self.http.get(versions.probe_path, params=dict(versions.probe_params)),
            timeout=self._timeout,
        )
        logger.debug("Version probe %s %s -> %s", service, versions.probe_path, response.status_code)
        return response.is_success

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
