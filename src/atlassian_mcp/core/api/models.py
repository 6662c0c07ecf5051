"""Request-layer data models and protocols.

Defines the core types used across the api sub-package:
- RequestDescriptor for a single logical call
- RetryPolicy for the attempt bound and backoff schedule
- ClientSettings for per-service client tuning
- SleepFunc / ClockFunc protocols for injectable time
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

VERSION_PLACEHOLDER = "{version}"

_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class RequestDescriptor:
    """Identifies a single logical call. Immutable once built.

    ``path`` is relative to the service base URL and may contain the
    ``{version}`` placeholder; when it does and ``service`` is set, the
    executor asks the version negotiator which API generation to address.
    """

    method: str
    path: str
    query_params: Mapping[str, Any] = field(default_factory=dict)
    body: Optional[Any] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    idempotent: Optional[bool] = None
    service: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "query_params", MappingProxyType(dict(self.query_params)))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        if self.idempotent is None:
            object.__setattr__(self, "idempotent", self.method in _IDEMPOTENT_METHODS)

    @property
    def is_versioned(self) -> bool:
        return self.service is not None and VERSION_PLACEHOLDER in self.path

    def resolve_path(self, version: Optional[str]) -> str:
        """Return the path with the version segment filled in."""
        if version is None or VERSION_PLACEHOLDER not in self.path:
            return self.path
        return self.path.replace(VERSION_PLACEHOLDER, version)

    @classmethod
    def get(cls, path: str, service: Optional[str] = None, **query_params: Any) -> "RequestDescriptor":
        """Shorthand for an idempotent GET; ``None`` query values are dropped."""
        params = {k: v for k, v in query_params.items() if v is not None}
        return cls(method="GET", path=path, query_params=params, service=service)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt bound and exponential backoff schedule.

    ``max_attempts`` counts every HTTP attempt, including the first.
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Backoff in seconds after the 0-indexed *attempt* failed."""
        return (self.base_delay_ms * (2.0**attempt)) / 1000.0

    @classmethod
    def from_retries(cls, max_retries: int, base_delay_ms: int = 1000) -> "RetryPolicy":
        """Build from the ``max_retries`` setting; at least one attempt is always made."""
        return cls(max_attempts=max(1, max_retries), base_delay_ms=base_delay_ms)


@dataclass
class ClientSettings:
    """Request-layer tuning for one service client.

    Millisecond units match the configuration surface.
    """

    timeout_ms: int = 30000
    max_retries: int = 3
    base_delay_ms: int = 1000
    rate_limit_ms: int = 0
    cache_enabled: bool = True
    cache_ttl_ms: int = 300000

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy.from_retries(self.max_retries, self.base_delay_ms)


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


class ClockFunc(Protocol):
    """Protocol for injectable monotonic clock (seconds)."""

    def __call__(self) -> float: ...
