"""Minimum-interval request pacing.

One limiter is shared by every request a client sends; there is no
per-endpoint limiting. ``wait`` never fails, it only adds latency.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from atlassian_mcp.core.api.models import ClockFunc, SleepFunc
from atlassian_mcp.core.observability import audit_log

logger = logging.getLogger(__name__)


class RateLimiter:
    """Enforces a minimum spacing between consecutive outbound requests.

    Args:
        min_interval_seconds: Required gap between requests (0 disables pacing).
        clock: Monotonic clock (seconds).
        sleep: Async sleep used to suspend the caller.
    """

    def __init__(
        self,
        min_interval_seconds: float = 0.0,
        *,
        clock: Optional[ClockFunc] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self._min_interval = max(0.0, min_interval_seconds)
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._last_request_at: Optional[float] = None

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval

    @property
    def enabled(self) -> bool:
        return self._min_interval > 0

    async def wait(self) -> float:
        """Suspend until ``min_interval`` has passed since the last request.

        Records the new last-request time and returns the seconds waited.
        """
        if not self.enabled:
            return 0.0

        now = self._clock()
        if self._last_request_at is None:
            release_at = now
        else:
            release_at = max(now, self._last_request_at + self._min_interval)
        # Reserve the slot before suspending so concurrent callers queue
        # behind each other instead of waking at the same instant.
        self._last_request_at = release_at

        waited = release_at - now
        if waited > 0:
            audit_log("rate_limit_wait", wait_ms=int(waited * 1000))
            await self._sleep(waited)
        return waited

    def reset(self) -> None:
        """Forget the last request time."""
        self._last_request_at = None
