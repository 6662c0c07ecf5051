"""Shared fixtures for atlassian-mcp tests.

Time is injected everywhere: ``FakeClock`` drives the cache and the rate
limiter and ``RecordingSleep`` records backoff delays instead of sleeping.
HTTP goes through ``httpx.MockTransport`` driven by ``RouteHandler``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from atlassian_mcp.core.api import Client, ClientSettings, ServiceVersions

BASE_URL = "https://example.atlassian.net"

Scripted = Union[httpx.Response, Exception]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep that records each delay and advances the clock."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.calls: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


def json_response(status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    if body is None:
        return httpx.Response(status, headers=headers)
    return httpx.Response(status, json=body, headers=headers)


class RouteHandler:
    """MockTransport handler replaying scripted responses per (method, path).

    Each route holds a list; responses are consumed in order and the last
    one repeats. Exceptions in the list are raised. Unknown routes get 404.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], List[Scripted]]] = None):
        self.routes: Dict[Tuple[str, str], List[Scripted]] = {
            key: list(value) for key, value in (routes or {}).items()
        }
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Scripted) -> "RouteHandler":
        self.routes[(method.upper(), path)] = list(responses)
        return self

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method.upper()) and (path is None or r.url.path == path)
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        scripted = self.routes.get((request.method, request.url.path))
        if not scripted:
            return json_response(404, {"errorMessages": [f"No route for {request.method} {request.url.path}"]})
        item = scripted.pop(0) if len(scripted) > 1 else scripted[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture
def make_client(clock, sleep):
    """Factory building a ``Client`` over a ``RouteHandler``."""

    def _make(
        handler: RouteHandler,
        *,
        service: str = "jira",
        settings: Optional[ClientSettings] = None,
        versions: Optional[ServiceVersions] = None,
    ) -> Client:
        return Client(
            BASE_URL,
            "user@example.com",
            "secret-token",
            service=service,
            settings=settings or ClientSettings(),
            versions=versions,
            transport=httpx.MockTransport(handler),
            clock=clock,
            sleep=sleep,
        )

    return _make
