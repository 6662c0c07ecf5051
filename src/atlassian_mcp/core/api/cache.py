"""TTL response cache for idempotent reads.

Entries expire lazily: an entry older than the TTL is dropped on the next
``get`` for its key. There is no background sweep and no size bound.
The cache is only touched from the event-loop thread, so no lock is taken;
two callers racing on one key may both miss and both ``put`` (last write wins).
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from atlassian_mcp.core.api.models import ClockFunc

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0

_MISSING = object()


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the monotonic time it was stored."""

    key: str
    value: Any
    stored_at: float


def make_cache_key(
    method: str,
    path: str,
    query_params: Optional[Mapping[str, Any]] = None,
    body: Optional[Any] = None,
) -> str:
    """Stable hash of method + path + query + body.

    Query parameters are sorted so that argument order does not matter.
    """
    material = json.dumps(
        {
            "method": method.upper(),
            "path": path,
            "query": sorted((str(k), str(v)) for k, v in (query_params or {}).items()),
            "body": body,
        },
        sort_keys=True,
        default=str,
        separators=(",", ":"),
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class ResponseCache:
    """In-memory TTL cache keyed by ``make_cache_key``."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Optional[ClockFunc] = None):
        self._ttl = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the fresh value for *key*, or *default*.

        A stale entry is deleted as a side effect.
        """
        entry = self._entries.get(key)
        if entry is None:
            return default
        if self._clock() - entry.stored_at >= self._ttl:
            del self._entries[key]
            logger.debug("Cache entry expired", extra={"cache_key": key[:12]})
            return default
        return entry.value

    def contains(self, key: str) -> bool:
        """Whether a fresh entry exists for *key* (evicts a stale one)."""
        return self.get(key, _MISSING) is not _MISSING

    def put(self, key: str, value: Any) -> None:
        """Store *value* under *key*, overwriting any existing entry."""
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())

    def clear(self) -> None:
        """Drop all entries."""
        self._entries.clear()
