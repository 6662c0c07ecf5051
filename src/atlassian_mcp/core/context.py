"""Request context propagation.

Holds the correlation ID for the current tool call in a ``contextvars``
variable so that log records, audit events and response metadata share
one identifier without threading it through every signature.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from ulid import ULID

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id(prefix: str = "req") -> str:
    """Generate a new sortable correlation ID, e.g. ``tool_01J...``."""
    return f"{prefix}_{ULID()}"


def get_correlation_id() -> str:
    """Return the correlation ID bound to the current context ('' if none)."""
    return _correlation_id.get()


@contextmanager
def sync_request_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of the ``with`` block.

    Works for coroutines as well: the binding is restored when the block
    exits, even if the awaited work raised.
    """
    corr_id = correlation_id or generate_correlation_id()
    token = _correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        _correlation_id.reset(token)
