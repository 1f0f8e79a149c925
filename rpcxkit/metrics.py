"""In-process metrics and a server plugin that records request metrics."""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Iterator
from typing import Any

from rpcxkit.share import ContextKey

# Context key under which the server stores the request start time (ns).
START_REQUEST_CONTEXT_KEY = ContextKey("start-parse-request")

# A call taking longer than this is treated as bogus and not recorded.
_MAX_CALL_TIME_NS = 30 * 60 * 1_000_000_000

_SAMPLE_SIZE = 1028


class Meter:
    """Counts events and reports their mean rate since creation."""

    def __init__(self) -> None:
        self._count = 0
        self._start = time.monotonic()
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        """Record ``n`` events."""
        with self._lock:
            self._count += n

    def count(self) -> int:
        """Return the number of events recorded."""
        with self._lock:
            return self._count

    def rate_mean(self) -> float:
        """Return events per second since the meter was created."""
        with self._lock:
            count = self._count
        if count == 0:
            return 0.0
        elapsed = time.monotonic() - self._start
        if elapsed <= 0:
            return float(count)
        return count / elapsed


class Counter:
    """A value that only moves by explicit increments."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        """Add ``n`` to the counter."""
        with self._lock:
            self._count += n

    def count(self) -> int:
        """Return the current value."""
        with self._lock:
            return self._count


class Histogram:
    """Distribution of values kept in a bounded uniform reservoir."""

    def __init__(self, sample_size: int = _SAMPLE_SIZE) -> None:
        self._sample_size = sample_size
        self._values: list[int | float] = []
        self._count = 0
        self._lock = threading.Lock()
        self._random = random.Random()

    def update(self, value: int | float) -> None:
        """Record one value."""
        with self._lock:
            self._count += 1
            if len(self._values) < self._sample_size:
                self._values.append(value)
                return
            slot = self._random.randrange(self._count)
            if slot < self._sample_size:
                self._values[slot] = value

    def count(self) -> int:
        """Return how many values were recorded in total."""
        with self._lock:
            return self._count

    def mean(self) -> float:
        """Return the mean of the sampled values, 0.0 when empty."""
        with self._lock:
            values = list(self._values)
        if not values:
            return 0.0
        return sum(values) / len(values)

    def percentile(self, p: float) -> float:
        """Return the ``p`` quantile (0..1) of the sampled values, 0.0 when empty."""
        with self._lock:
            values = sorted(self._values)
        if not values:
            return 0.0
        n = len(values)
        pos = p * (n + 1)
        if pos < 1:
            return float(values[0])
        if pos >= n:
            return float(values[-1])
        lower = values[int(pos) - 1]
        upper = values[int(pos)]
        return lower + (pos - int(pos)) * (upper - lower)


class Registry:
    """Named metrics, created on first use."""

    def __init__(self) -> None:
        self._metrics: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _get_or_register(self, name: str, kind: type) -> Any:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = kind()
            elif not isinstance(metric, kind):
                raise TypeError(
                    f"metric {name!r} is a {type(metric).__name__}, not a {kind.__name__}"
                )
            return metric

    def get_or_register_meter(self, name: str) -> Meter:
        """Return the meter called ``name``, creating it if needed."""
        return self._get_or_register(name, Meter)

    def get_or_register_counter(self, name: str) -> Counter:
        """Return the counter called ``name``, creating it if needed."""
        return self._get_or_register(name, Counter)

    def get_or_register_histogram(self, name: str) -> Histogram:
        """Return the histogram called ``name``, creating it if needed."""
        return self._get_or_register(name, Histogram)

    def each(self) -> Iterator[tuple[str, Any]]:
        """Yield ``(name, metric)`` for every registered metric."""
        with self._lock:
            items = list(self._metrics.items())
        yield from items


class MetricsPlugin:
    """Collects service, connection and call-time metrics of a server."""

    def __init__(self, registry: Registry | None = None, prefix: str = "") -> None:
        self.registry = registry if registry is not None else Registry()
        self.prefix = prefix

    def _with_prefix(self, name: str) -> str:
        return self.prefix + name

    def register(self, name: str, rcvr: Any, metadata: str) -> None:
        """Count a registered service."""
        self.registry.get_or_register_counter(self._with_prefix("serviceCounter")).inc(1)

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        """Mark an accepted client connection."""
        self.registry.get_or_register_meter(self._with_prefix("clientMeter")).mark(1)
        return conn, True

    def pre_read_request(self, ctx: Any) -> None:
        """Nothing to do before a request is read."""
        return None

    def post_read_request(self, ctx: Any, req: Any, err: Exception | None) -> None:
        """Mark a request read for its service method."""
        if not req.service_path:
            return
        name = f"service.{req.service_path}.{req.service_method}.Read_Qps"
        self.registry.get_or_register_meter(self._with_prefix(name)).mark(1)

    def post_write_response(
        self, ctx: Any, req: Any, res: Any, err: Exception | None
    ) -> None:
        """Mark a response written and record how long the call took."""
        path, method = res.service_path, res.service_method
        if not path:
            return
        base = f"service.{path}.{method}"
        self.registry.get_or_register_meter(self._with_prefix(base + ".Write_Qps")).mark(1)

        start = ctx.value(START_REQUEST_CONTEXT_KEY) if ctx is not None else None
        if not isinstance(start, int) or start <= 0:
            return
        elapsed = time.time_ns() - start
        if elapsed < _MAX_CALL_TIME_NS:
            self.registry.get_or_register_histogram(
                self._with_prefix(base + ".CallTime")
            ).update(elapsed)