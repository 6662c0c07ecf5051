"""Remote API error classes.

``ClassifiedError`` is the single failure type raised by the request layer.
Its ``kind`` tag is drawn from the closed ``ErrorKind`` taxonomy so callers
can branch on the tag instead of probing ad hoc attributes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional


class ErrorKind(str, Enum):
    """Closed taxonomy of request-layer failures."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    AUTH_ERROR = "auth_error"
    NOT_FOUND = "not_found"
    GONE = "gone"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"


RECOVERABLE_KINDS: FrozenSet[ErrorKind] = frozenset(
    {
        ErrorKind.TIMEOUT,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVER_ERROR,
    }
)


class ClassifiedError(Exception):
    """A normalized request failure.

    Created once per failure at the transport boundary and not mutated
    afterwards.

    Attributes:
        kind: Taxonomy tag.
        message: Human-readable message, carrying the server's own
            diagnostic text when one was available.
        http_status: HTTP status code, or None for transport failures.
        details: Machine-readable context (url, method, truncated body...).
        retry_after: Server-requested delay in seconds (RATE_LIMITED only).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        http_status: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.http_status = http_status
        self.details: Dict[str, Any] = dict(details) if details else {}
        self.retry_after = retry_after

    @property
    def recoverable(self) -> bool:
        """Whether the retry loop may attempt the request again."""
        return self.kind in RECOVERABLE_KINDS

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(kind={self.kind.value!r}, http_status={self.http_status!r}, "
            f"message={self.message!r})"
        )
