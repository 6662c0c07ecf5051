"""Resilient execution of a single logical API call.

Execution order for ``RequestExecutor.execute``:
1. Resolve the API version for versioned paths
2. Serve idempotent reads from the response cache (no I/O, no pacing)
3. Wait on the rate limiter
4. Attempt the HTTP call with a per-attempt timeout
5. Classify failures; retry recoverable ones with exponential backoff
6. On ``Gone`` at the default version, downgrade once and re-run 2-5
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from atlassian_mcp.core.api.cache import ResponseCache, make_cache_key
from atlassian_mcp.core.api.classifier import (
    classify_exception,
    classify_response,
    malformed_body_error,
)
from atlassian_mcp.core.api.models import RequestDescriptor, RetryPolicy, SleepFunc
from atlassian_mcp.core.api.rate_limit import RateLimiter
from atlassian_mcp.core.api.versions import VersionNegotiator
from atlassian_mcp.core.errors.api import ClassifiedError, ErrorKind
from atlassian_mcp.core.observability import (
    audit_log,
    get_metrics,
    redact_for_logging,
    redact_headers,
)

logger = logging.getLogger(__name__)

_MISSING = object()


class RequestExecutor:
    """Executes ``RequestDescriptor``s against one service's HTTP client.

    Args:
        http: Configured ``httpx.AsyncClient`` (base URL and auth headers set).
        rate_limiter: Shared pacing for every request of the client.
        cache: Response cache for idempotent reads (None disables caching).
        negotiator: Version negotiator for ``{version}`` paths.
        timeout_seconds: Per-attempt deadline.
        retry_policy: Default attempt bound and backoff.
        sleep: Injectable async sleep used for backoff.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ResponseCache] = None,
        negotiator: Optional[VersionNegotiator] = None,
        timeout_seconds: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self._http = http
        self._rate_limiter = rate_limiter or RateLimiter()
        self._cache = cache
        self._negotiator = negotiator
        self._timeout = timeout_seconds
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep
        self._metrics = get_metrics()

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def execute(
        self,
        descriptor: RequestDescriptor,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """Execute one logical call and return the parsed body.

        Args:
            descriptor: The call to make (not mutated).
            retry_policy: Overrides the executor's default policy.

        Returns:
            Parsed JSON for JSON responses, text otherwise, None for empty bodies.

        Raises:
            ClassifiedError: Non-recoverable failure, exhausted retries, or a
                ``Gone`` that survived the single version downgrade.
        """
        policy = retry_policy or self._retry_policy

        version: Optional[str] = None
        if descriptor.is_versioned and self._negotiator is not None:
            version = self._negotiator.resolve_version(descriptor.service)

        try:
            return await self._execute_at(descriptor, version, policy)
        except ClassifiedError as exc:
            if exc.kind is not ErrorKind.GONE or version is None:
                raise
            retry_version = self._downgraded_version(descriptor.service, version)
            if retry_version is None:
                raise
            logger.info(
                "Retrying %s %s at API version %s after 410 Gone",
                descriptor.method,
                descriptor.path,
                retry_version,
            )
            return await self._execute_at(descriptor, retry_version, policy)

    def _downgraded_version(self, service: str, failed_version: str) -> Optional[str]:
        current = self._negotiator.resolve_version(service)
        if current != failed_version:
            # Another call already downgraded while this one was in flight.
            return current
        return self._negotiator.mark_gone(service)

    async def _execute_at(
        self,
        descriptor: RequestDescriptor,
        version: Optional[str],
        policy: RetryPolicy,
    ) -> Any:
        path = descriptor.resolve_path(version)

        cache_key: Optional[str] = None
        if descriptor.idempotent and self._cache is not None:
            cache_key = make_cache_key(descriptor.method, path, descriptor.query_params, descriptor.body)
            cached = self._cache.get(cache_key, _MISSING)
            if cached is not _MISSING:
                audit_log("cache_hit", service=descriptor.service, method=descriptor.method, path=path)
                self._metrics.counter("api.cache_hits", labels={"service": descriptor.service or "-"})
                return cached

        await self._rate_limiter.wait()

        for attempt in range(policy.max_attempts):
            try:
                value = await self._attempt(descriptor, path, attempt)
            except ClassifiedError as error:
                final = attempt == policy.max_attempts - 1
                if not error.recoverable or final:
                    if error.kind is ErrorKind.AUTH_ERROR:
                        audit_log(
                            "auth_failure",
                            service=descriptor.service,
                            status=error.http_status,
                            path=path,
                        )
                    raise

                delay = policy.delay_for(attempt)
                if error.retry_after is not None:
                    delay = max(delay, error.retry_after)

                audit_log(
                    "retry_attempt",
                    service=descriptor.service,
                    attempt=attempt + 1,
                    max_attempts=policy.max_attempts,
                    error_kind=error.kind.value,
                    error_message=error.message[:200],
                    delay_ms=int(delay * 1000),
                )
                await self._sleep(delay)
                continue

            if cache_key is not None:
                self._cache.put(cache_key, value)
                self._metrics.gauge("api.cache_entries", len(self._cache))
            return value

        raise RuntimeError("RequestExecutor: retry loop exited without a result")

    async def _attempt(self, descriptor: RequestDescriptor, path: str, attempt: int) -> Any:
        request_kwargs: dict = {
            "params": dict(descriptor.query_params) or None,
            "headers": dict(descriptor.headers) or None,
        }
        if isinstance(descriptor.body, (str, bytes)):
            request_kwargs["content"] = descriptor.body
        elif descriptor.body is not None:
            request_kwargs["json"] = descriptor.body

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s %s attempt %d params=%s headers=%s",
                descriptor.method,
                path,
                attempt + 1,
                redact_for_logging(dict(descriptor.query_params)),
                redact_headers(descriptor.headers),
            )

        labels = {"service": descriptor.service or "-", "method": descriptor.method}
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._http.request(descriptor.method, path, **request_kwargs),
                timeout=self._timeout,
            )
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            error = classify_exception(exc, url=path, timeout_seconds=self._timeout)
            logger.debug(
                "%s %s failed on attempt %d: %s",
                descriptor.method,
                path,
                attempt + 1,
                error.message,
            )
            self._metrics.counter("api.requests", labels={**labels, "status": error.kind.value})
            self._metrics.timer("api.latency", duration_ms, labels=labels)
            raise error from exc

        duration_ms = (time.perf_counter() - start) * 1000
        self._metrics.counter("api.requests", labels={**labels, "status": str(response.status_code)})
        self._metrics.timer("api.latency", duration_ms, labels=labels)
        audit_log(
            "api_request",
            service=descriptor.service,
            method=descriptor.method,
            path=path,
            status=response.status_code,
            attempt=attempt + 1,
            duration_ms=round(duration_ms, 2),
        )

        if not response.is_success:
            raise classify_response(response, service=descriptor.service)
        return self._parse_body(response)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError as exc:
                raise malformed_body_error(response, exc) from exc
        return response.text
