"""API version negotiation.

Per service, the negotiator tracks two independent pieces of state:

- the *default version* requests address. It starts at the newest
  generation and is rewritten once, permanently, to the older generation
  when a request at the default version comes back ``410 Gone``. There is
  no further fallback tier.
- the *probe status* of the newer surface (``UNKNOWN`` until a one-time
  canary GET settles it to ``AVAILABLE`` or ``UNAVAILABLE``). The result
  is kept for the life of the process unless ``reset`` is called.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from atlassian_mcp.core.observability import audit_log

logger = logging.getLogger(__name__)


class VersionStatus(str, Enum):
    """Probe outcome for a service's newer API surface."""

    UNKNOWN = "unknown"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ServiceVersions:
    """Version table for one service.

    Attributes:
        default: Generation addressed at process start.
        fallback: Older generation to downgrade to on ``Gone`` (None = no fallback).
        probe_path: Canary endpoint for the newer surface, relative to the base URL.
        probe_params: Query parameters for the canary request.
    """

    default: str
    fallback: Optional[str] = None
    probe_path: Optional[str] = None
    probe_params: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class VersionState:
    """Mutable per-service negotiation state (copies are handed out)."""

    current_version: str
    status: VersionStatus = VersionStatus.UNKNOWN
    checked_at: Optional[float] = None
    downgraded: bool = False


ProbeFunc = Callable[[str, ServiceVersions], Awaitable[bool]]


class VersionNegotiator:
    """Resolves and adapts the API generation each service request addresses.

    Args:
        services: Version table per service name.
        probe_func: Coroutine performing the canary request; returns True
            when the newer surface answered with a 2xx.
        clock: Wall clock used for ``checked_at`` stamps.
    """

    def __init__(
        self,
        services: Optional[Mapping[str, ServiceVersions]] = None,
        *,
        probe_func: Optional[ProbeFunc] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._services: Dict[str, ServiceVersions] = {}
        self._states: Dict[str, VersionState] = {}
        self._probes: Dict[str, "asyncio.Task[bool]"] = {}
        self._probe_func = probe_func
        self._clock = clock
        for name, versions in (services or {}).items():
            self.register(name, versions)

    def register(self, service: str, versions: ServiceVersions) -> None:
        """Add or replace a service's version table (state starts fresh)."""
        self._services[service] = versions
        self._states[service] = VersionState(current_version=versions.default)
        self._probes.pop(service, None)

    def versions(self, service: str) -> ServiceVersions:
        self._require(service)
        return self._services[service]

    def _require(self, service: str) -> VersionState:
        try:
            return self._states[service]
        except KeyError:
            raise ValueError(f"Unknown service for version negotiation: {service!r}") from None

    def resolve_version(self, service: str) -> str:
        """Return the version requests for *service* should address."""
        return self._require(service).current_version

    def mark_gone(self, service: str) -> Optional[str]:
        """Downgrade *service* to its older generation.

        Returns the newly addressed version, or None when no older tier is
        left (already downgraded or no fallback configured). Repeated calls
        never move past the single fallback hop.
        """
        state = self._require(service)
        versions = self._services[service]
        if state.downgraded or not versions.fallback:
            return None

        previous = state.current_version
        state.current_version = versions.fallback
        state.downgraded = True
        logger.warning(
            "API version %s for %s reported gone; downgrading to %s",
            previous,
            service,
            versions.fallback,
        )
        audit_log(
            "version_downgrade",
            service=service,
            from_version=previous,
            to_version=versions.fallback,
        )
        return versions.fallback

    async def probe(self, service: str) -> bool:
        """One-time capability check of the newer surface for *service*.

        The outcome is cached indefinitely; concurrent callers share the
        single in-flight canary request.
        """
        state = self._require(service)
        if state.status is not VersionStatus.UNKNOWN:
            return state.status is VersionStatus.AVAILABLE

        versions = self._services[service]
        if self._probe_func is None or not versions.probe_path:
            raise ValueError(f"No probe configured for service {service!r}")

        task = self._probes.get(service)
        if task is None:
            task = asyncio.ensure_future(self._run_probe(service, versions, self._probe_func))
            self._probes[service] = task
        return await asyncio.shield(task)

    async def _run_probe(self, service: str, versions: ServiceVersions, probe_func: ProbeFunc) -> bool:
        try:
            available = await probe_func(service, versions)
        except Exception as exc:
            logger.warning("Version probe for %s failed: %s", service, exc)
            available = False

        self.set_probe_result(service, available)
        audit_log(
            "version_probe",
            service=service,
            path=versions.probe_path,
            available=available,
        )
        return available

    def set_probe_result(self, service: str, available: bool) -> None:
        """Record a probe outcome (also used to pin it from configuration)."""
        state = self._require(service)
        state.status = VersionStatus.AVAILABLE if available else VersionStatus.UNAVAILABLE
        state.checked_at = self._clock()

    def state(self, service: str) -> VersionState:
        """Return a copy of the negotiation state for *service*."""
        return replace(self._require(service))

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Serializable view of every service's state."""
        return {
            name: {
                "current_version": state.current_version,
                "default_version": self._services[name].default,
                "downgraded": state.downgraded,
                "probe_status": state.status.value,
                "checked_at": state.checked_at,
            }
            for name, state in self._states.items()
        }

    def reset(self, service: Optional[str] = None) -> None:
        """Forget probe and downgrade decisions (all services when None)."""
        names = [service] if service is not None else list(self._services)
        for name in names:
            self._require(name)
            self._states[name] = VersionState(current_version=self._services[name].default)
            self._probes.pop(name, None)
