"""A request context that carries several local values over a parent."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from rpcxkit.share import OPENCENSUS_SPAN_REQUEST_KEY, REQ_META_DATA_KEY


class Context:
    """Context holding local tags; lookups fall back to the parent.

    A parent is any object with a ``value(key)`` method, or None.
    """

    def __init__(self, parent: Any = None) -> None:
        self.parent = parent
        self.tags: dict[Any, Any] = {}

    def value(self, key: Any) -> Any:
        """Return the value for ``key`` from the tags or the parent, else None."""
        if key in self.tags:
            return self.tags[key]
        if self.parent is None:
            return None
        return self.parent.value(key)

    def set_value(self, key: Any, val: Any) -> None:
        """Store ``val`` under ``key`` in this context."""
        self.tags[key] = val

    def __str__(self) -> str:
        parent = "Background" if self.parent is None else str(self.parent)
        return f"{parent}.WithValue({self.tags})"


def _check_key(key: Any) -> None:
    if key is None:
        raise ValueError("nil key")
    try:
        hash(key)
    except TypeError:
        raise TypeError("key is not comparable") from None


def with_value(parent: Any, key: Any, val: Any) -> Context:
    """Return a new context over ``parent`` holding one value."""
    _check_key(key)
    ctx = Context(parent)
    ctx.tags[key] = val
    return ctx


def with_local_value(ctx: Context, key: Any, val: Any) -> Context:
    """Store a value in ``ctx`` itself and return it."""
    _check_key(key)
    ctx.tags[key] = val
    return ctx


@dataclass(frozen=True)
class SpanContext:
    """Trace and span identifiers of a remote parent span."""

    trace_id: bytes
    span_id: bytes
    trace_options: int = 0


def get_opencensus_span_context(ctx: Any) -> SpanContext | None:
    """Read the remote span context carried in the request metadata.

    Returns None when the context has no request metadata; raises LookupError
    when the metadata lacks the span key and ValueError when it is too short.
    """
    req_meta = ctx.value(REQ_META_DATA_KEY)
    if not isinstance(req_meta, Mapping):
        return None
    span_key = req_meta.get(OPENCENSUS_SPAN_REQUEST_KEY, "")
    if not span_key:
        raise LookupError("key not found")
    data = span_key.encode()
    if len(data) < 24:
        raise ValueError("span key is shorter than 24 bytes")
    return SpanContext(trace_id=data[:16], span_id=data[16:24])