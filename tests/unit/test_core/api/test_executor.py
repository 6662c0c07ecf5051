"""Tests for the retrying request executor.

Every test runs through a real ``Client`` over ``httpx.MockTransport``
with injected clock and sleep, so backoff delays are observable without
real waiting.
"""

import asyncio
import json

import httpx
import pytest

from atlassian_mcp.core.api import Client, ClientSettings, RequestDescriptor, RetryPolicy
from atlassian_mcp.core.errors import ClassifiedError, ErrorKind
from tests.conftest import BASE_URL, RouteHandler, json_response

MYSELF = "/rest/api/3/myself"
SEARCH = "/rest/api/{version}/search/jql"


class HangingTransport(httpx.AsyncBaseTransport):
    """Transport whose requests never complete until cancelled."""

    def __init__(self):
        self.started = 0
        self.cancelled = 0

    async def handle_async_request(self, request):
        self.started += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        raise AssertionError("unreachable")


class TestRetries:
    """Tests for the attempt bound and backoff schedule."""

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_attempts(self, make_client, sleep):
        """Three 500s mean three attempts, backoff 1s then 2s, then SERVER_ERROR."""
        handler = RouteHandler().add("GET", MYSELF, json_response(500))
        client = make_client(handler)

        with pytest.raises(ClassifiedError) as exc_info:
            await client.get(MYSELF)

        assert exc_info.value.kind is ErrorKind.SERVER_ERROR
        assert len(handler.requests) == 3
        assert sleep.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_auth_error_is_not_retried(self, make_client, sleep):
        handler = RouteHandler().add("GET", MYSELF, json_response(401, {"message": "Unauthorized"}))
        client = make_client(handler)

        with pytest.raises(ClassifiedError) as exc_info:
            await client.get(MYSELF)

        assert exc_info.value.kind is ErrorKind.AUTH_ERROR
        assert exc_info.value.http_status == 401
        assert len(handler.requests) == 1
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(404, {"errorMessages": ["Gone fishing"]}))
        client = make_client(handler)

        with pytest.raises(ClassifiedError) as exc_info:
            await client.get(MYSELF)

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert "Gone fishing" in exc_info.value.message
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limited_then_success(self, make_client, sleep):
        """A 429 honours Retry-After when it exceeds the backoff delay."""
        handler = RouteHandler().add(
            "GET",
            MYSELF,
            json_response(429, headers={"Retry-After": "5"}),
            json_response(200, {"accountId": "abc"}),
        )
        client = make_client(handler)

        assert await client.get(MYSELF) == {"accountId": "abc"}
        assert len(handler.requests) == 2
        assert sleep.calls == [5.0]

    @pytest.mark.asyncio
    async def test_short_retry_after_keeps_backoff(self, make_client, sleep):
        handler = RouteHandler().add(
            "GET",
            MYSELF,
            json_response(429, headers={"Retry-After": "0"}),
            json_response(200, {"ok": True}),
        )
        client = make_client(handler)

        await client.get(MYSELF)
        assert sleep.calls == [1.0]

    @pytest.mark.asyncio
    async def test_transport_timeout_is_retried(self, make_client, sleep):
        handler = RouteHandler().add(
            "GET",
            MYSELF,
            httpx.ReadTimeout("read timed out"),
            json_response(200, {"ok": True}),
        )
        client = make_client(handler)

        assert await client.get(MYSELF) == {"ok": True}
        assert sleep.calls == [1.0]

    @pytest.mark.asyncio
    async def test_deadline_cancels_hung_request(self, clock, sleep):
        """Each attempt past its deadline is cancelled, then retried until the bound."""
        transport = HangingTransport()
        client = Client(
            BASE_URL,
            "user@example.com",
            "secret-token",
            service="jira",
            settings=ClientSettings(timeout_ms=50, max_retries=2),
            transport=transport,
            clock=clock,
            sleep=sleep,
        )

        with pytest.raises(ClassifiedError) as exc_info:
            await client.get(MYSELF)

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert transport.started == 2
        assert transport.cancelled == 2
        assert sleep.calls == [1.0]

    @pytest.mark.asyncio
    async def test_network_error_exhausts_attempts(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, httpx.ConnectError("connection refused"))
        client = make_client(handler)

        with pytest.raises(ClassifiedError) as exc_info:
            await client.get(MYSELF)

        assert exc_info.value.kind is ErrorKind.NETWORK_ERROR
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_zero_retries_still_attempts_once(self, make_client, sleep):
        handler = RouteHandler().add("GET", MYSELF, json_response(503))
        client = make_client(handler, settings=ClientSettings(max_retries=0))

        with pytest.raises(ClassifiedError):
            await client.get(MYSELF)

        assert len(handler.requests) == 1
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_per_call_retry_policy(self, make_client, sleep):
        handler = RouteHandler().add("GET", MYSELF, json_response(500))
        client = make_client(handler)

        with pytest.raises(ClassifiedError):
            await client.execute(RequestDescriptor.get(MYSELF), RetryPolicy(max_attempts=4, base_delay_ms=10))

        assert len(handler.requests) == 4
        assert sleep.calls == pytest.approx([0.01, 0.02, 0.04])

    @pytest.mark.asyncio
    async def test_writes_are_retried(self, make_client):
        handler = RouteHandler().add(
            "POST",
            "/wiki/rest/api/content",
            json_response(502),
            json_response(200, {"id": "1"}),
        )
        client = make_client(handler, service="confluence")

        assert await client.post("/wiki/rest/api/content", {"title": "T"}) == {"id": "1"}
        assert len(handler.requests) == 2


class TestCaching:
    """Tests for response caching of idempotent reads."""

    @pytest.mark.asyncio
    async def test_identical_reads_hit_cache(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {"accountId": "abc"}))
        client = make_client(handler)

        first = await client.get(MYSELF, {"expand": "groups"})
        second = await client.get(MYSELF, {"expand": "groups"})

        assert first == second == {"accountId": "abc"}
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self, make_client, clock):
        handler = RouteHandler().add(
            "GET",
            MYSELF,
            json_response(200, {"n": 1}),
            json_response(200, {"n": 2}),
        )
        client = make_client(handler, settings=ClientSettings(cache_ttl_ms=1000))

        assert await client.get(MYSELF) == {"n": 1}
        clock.advance(1.0)
        assert await client.get(MYSELF) == {"n": 2}
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_different_params_miss(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {"ok": True}))
        client = make_client(handler)

        await client.get(MYSELF, {"expand": "a"})
        await client.get(MYSELF, {"expand": "b"})
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_disabled_cache(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {"ok": True}))
        client = make_client(handler, settings=ClientSettings(cache_enabled=False))

        await client.get(MYSELF)
        await client.get(MYSELF)
        assert client.cache is None
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_writes_are_never_cached(self, make_client):
        handler = RouteHandler().add("POST", "/wiki/rest/api/content", json_response(200, {"id": "1"}))
        client = make_client(handler, service="confluence")

        await client.post("/wiki/rest/api/content", {"title": "T"})
        await client.post("/wiki/rest/api/content", {"title": "T"})
        assert len(handler.requests) == 2
        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, make_client):
        handler = RouteHandler().add(
            "GET",
            MYSELF,
            json_response(404),
            json_response(200, {"ok": True}),
        )
        client = make_client(handler)

        with pytest.raises(ClassifiedError):
            await client.get(MYSELF)
        assert await client.get(MYSELF) == {"ok": True}

    @pytest.mark.asyncio
    async def test_non_idempotent_get_bypasses_cache(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {"ok": True}))
        client = make_client(handler)
        descriptor = RequestDescriptor("GET", MYSELF, idempotent=False)

        await client.execute(descriptor)
        await client.execute(descriptor)
        assert len(handler.requests) == 2


class TestVersionDowngrade:
    """Tests for the single 410 Gone downgrade."""

    @pytest.mark.asyncio
    async def test_gone_at_v3_retries_at_v2(self, make_client):
        handler = (
            RouteHandler()
            .add("GET", "/rest/api/3/search/jql", json_response(410))
            .add("GET", "/rest/api/2/search/jql", json_response(200, {"total": 0, "issues": []}))
        )
        client = make_client(handler)

        result = await client.execute(RequestDescriptor.get(SEARCH, service="jira", jql="project = X"))

        assert result == {"total": 0, "issues": []}
        assert [r.url.path for r in handler.requests] == ["/rest/api/3/search/jql", "/rest/api/2/search/jql"]
        assert client.resolve_version() == "2"
        assert client.version_state().downgraded is True

    @pytest.mark.asyncio
    async def test_later_calls_start_at_fallback(self, make_client):
        handler = (
            RouteHandler()
            .add("GET", "/rest/api/3/search/jql", json_response(410))
            .add("GET", "/rest/api/2/search/jql", json_response(200, {"issues": []}))
        )
        client = make_client(handler)

        await client.execute(RequestDescriptor.get(SEARCH, service="jira", jql="a"))
        await client.execute(RequestDescriptor.get(SEARCH, service="jira", jql="b"))

        assert len(handler.calls(path="/rest/api/3/search/jql")) == 1

    @pytest.mark.asyncio
    async def test_gone_at_fallback_is_final(self, make_client):
        """A 410 at v2 surfaces as GONE without another downgrade."""
        handler = (
            RouteHandler()
            .add("GET", "/rest/api/3/search/jql", json_response(410))
            .add("GET", "/rest/api/2/search/jql", json_response(410))
        )
        client = make_client(handler)

        with pytest.raises(ClassifiedError) as exc_info:
            await client.execute(RequestDescriptor.get(SEARCH, service="jira", jql="x"))

        assert exc_info.value.kind is ErrorKind.GONE
        assert len(handler.requests) == 2
        assert client.resolve_version() == "2"

    @pytest.mark.asyncio
    async def test_gone_on_unversioned_path_is_raised(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(410))
        client = make_client(handler)

        with pytest.raises(ClassifiedError) as exc_info:
            await client.get(MYSELF)

        assert exc_info.value.kind is ErrorKind.GONE
        assert client.resolve_version() == "3"


class TestBodies:
    """Tests for request and response body handling."""

    @pytest.mark.asyncio
    async def test_json_body_is_sent(self, make_client):
        handler = RouteHandler().add("PUT", "/wiki/rest/api/content/1", json_response(200, {"id": "1"}))
        client = make_client(handler, service="confluence")

        await client.put("/wiki/rest/api/content/1", {"title": "T", "version": {"number": 2}})

        request = handler.requests[0]
        assert json.loads(request.content) == {"title": "T", "version": {"number": 2}}
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_auth_and_agent_headers(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {}))
        client = make_client(handler)

        await client.get(MYSELF)

        headers = handler.requests[0].headers
        assert headers["authorization"].startswith("Basic ")
        assert headers["user-agent"].startswith("atlassian-mcp/")

    @pytest.mark.asyncio
    async def test_no_content(self, make_client):
        handler = RouteHandler().add("DELETE", "/wiki/rest/api/content/1", httpx.Response(204))
        client = make_client(handler, service="confluence")

        assert await client.delete("/wiki/rest/api/content/1") is None

    @pytest.mark.asyncio
    async def test_text_body(self, make_client):
        handler = RouteHandler().add("GET", "/status", httpx.Response(200, text="OK"))
        client = make_client(handler)

        assert await client.get("/status") == "OK"

    @pytest.mark.asyncio
    async def test_malformed_json_is_not_retried(self, make_client):
        handler = RouteHandler().add(
            "GET",
            MYSELF,
            httpx.Response(200, content=b"{not json", headers={"content-type": "application/json"}),
        )
        client = make_client(handler)

        with pytest.raises(ClassifiedError) as exc_info:
            await client.get(MYSELF)

        assert exc_info.value.kind is ErrorKind.BAD_REQUEST
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self, make_client):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {}))
        client = make_client(handler)

        await client.get(MYSELF, {"expand": None, "limit": 5})

        assert dict(handler.requests[0].url.params) == {"limit": "5"}


class TestPacing:
    """Tests for rate limiting across calls."""

    @pytest.mark.asyncio
    async def test_calls_are_spaced(self, make_client, sleep):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {}))
        client = make_client(handler, settings=ClientSettings(rate_limit_ms=250, cache_enabled=False))

        await client.get(MYSELF)
        await client.get(MYSELF)

        assert sleep.calls == [pytest.approx(0.25)]

    @pytest.mark.asyncio
    async def test_cache_hits_are_not_paced(self, make_client, sleep):
        handler = RouteHandler().add("GET", MYSELF, json_response(200, {}))
        client = make_client(handler, settings=ClientSettings(rate_limit_ms=250))

        await client.get(MYSELF)
        await client.get(MYSELF)

        assert sleep.calls == []
