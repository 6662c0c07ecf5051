"""Tests for the per-service Client."""

import base64

import httpx
import pytest

from atlassian_mcp.config import ServiceConfig
from atlassian_mcp.core.api import (
    SERVICE_VERSIONS,
    Client,
    ServiceVersions,
    VersionStatus,
    basic_auth_header,
    versions_for,
)
from tests.conftest import RouteHandler, json_response

PROBE = "/wiki/api/v2/spaces"


class TestVersionsFor:
    """Tests for versions_for()."""

    def test_defaults(self):
        assert versions_for("jira") == ServiceVersions(default="3", fallback="2")
        assert versions_for("confluence").probe_path == PROBE

    def test_jira_pinned_to_v2_has_no_fallback(self):
        assert versions_for("jira", "2") == ServiceVersions(default="2", fallback=None)

    def test_jira_default_version_unchanged(self):
        assert versions_for("jira", "3") is SERVICE_VERSIONS["jira"]

    def test_unknown_service(self):
        with pytest.raises(ValueError, match="Unknown service"):
            versions_for("bamboo")


def test_basic_auth_header():
    expected = base64.b64encode(b"me@example.com:tok").decode("ascii")
    assert basic_auth_header("me@example.com", "tok") == f"Basic {expected}"


class TestProbe:
    """Tests for the Confluence v2 capability probe."""

    @pytest.mark.asyncio
    async def test_probe_success(self, make_client):
        handler = RouteHandler().add("GET", PROBE, json_response(200, {"results": []}))
        client = make_client(handler, service="confluence")

        assert await client.probe() is True
        assert await client.probe() is True

        assert len(handler.requests) == 1
        assert handler.requests[0].url.params["limit"] == "1"
        assert client.version_state().status is VersionStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_probe_failure_is_unavailable(self, make_client):
        handler = RouteHandler().add("GET", PROBE, json_response(404))
        client = make_client(handler, service="confluence")

        assert await client.probe() is False
        assert client.version_state().status is VersionStatus.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_probe_transport_error_is_unavailable(self, make_client):
        handler = RouteHandler().add("GET", PROBE, httpx.ConnectError("refused"))
        client = make_client(handler, service="confluence")

        assert await client.probe() is False


class TestFromConfig:
    """Tests for Client.from_config()."""

    def _config(self, service, **overrides):
        config = ServiceConfig(
            service,
            url="https://example.atlassian.net",
            email="me@example.com",
            api_token="tok",
        )
        for key, value in overrides.items():
            setattr(config, key, value)
        return config

    def test_settings_are_applied(self):
        config = self._config("jira", timeout_ms=5000, max_retries=5, cache_enabled=False, rate_limit_ms=100)
        client = Client.from_config("jira", config)

        assert client.settings.timeout_ms == 5000
        assert client.executor.retry_policy.max_attempts == 5
        assert client.cache is None
        assert client.rate_limiter.min_interval_seconds == pytest.approx(0.1)
        assert client.base_url == "https://example.atlassian.net"

    def test_jira_pinned_version(self):
        client = Client.from_config("jira", self._config("jira", api_version="2"))
        assert client.resolve_version() == "2"

    @pytest.mark.asyncio
    async def test_confluence_pinned_v1_skips_probe(self):
        handler = RouteHandler()
        client = Client.from_config(
            "confluence",
            self._config("confluence", api_version="v1"),
            transport=httpx.MockTransport(handler),
        )

        assert await client.probe() is False
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_confluence_auto_probes(self):
        handler = RouteHandler().add("GET", PROBE, json_response(200, {}))
        client = Client.from_config(
            "confluence",
            self._config("confluence"),
            transport=httpx.MockTransport(handler),
        )

        assert client.version_state().status is VersionStatus.UNKNOWN
        assert await client.probe() is True


class TestLifecycle:
    """Tests for cache management and closing."""

    @pytest.mark.asyncio
    async def test_clear_cache(self, make_client):
        handler = RouteHandler().add("GET", "/rest/api/3/myself", json_response(200, {}))
        client = make_client(handler)

        await client.get("/rest/api/3/myself")
        client.clear_cache()
        await client.get("/rest/api/3/myself")

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, make_client):
        client = make_client(RouteHandler())
        async with client as entered:
            assert entered is client
        assert client.http.is_closed
