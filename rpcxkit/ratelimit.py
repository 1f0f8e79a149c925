"""Token-bucket rate limiting for connections and requests."""

from __future__ import annotations

import threading
import time
from typing import Any


class TokenBucket:
    """A bucket that starts full and gains one token every ``fill_interval`` seconds."""

    def __init__(self, fill_interval: float, capacity: int) -> None:
        if fill_interval <= 0:
            raise ValueError("token bucket fill interval is not > 0")
        if capacity <= 0:
            raise ValueError("token bucket capacity is not > 0")
        self.fill_interval = float(fill_interval)
        self.capacity = int(capacity)
        self._start = time.monotonic()
        self._latest_tick = 0
        self._available = self.capacity
        self._lock = threading.Lock()

    def _current_tick(self, now: float) -> int:
        return int((now - self._start) / self.fill_interval)

    def _adjust(self, tick: int) -> None:
        if self._available < self.capacity:
            self._available = min(
                self.capacity, self._available + (tick - self._latest_tick)
            )
        self._latest_tick = tick

    def take_available(self, count: int) -> int:
        """Take up to ``count`` tokens without waiting; return how many were taken."""
        if count <= 0:
            return 0
        with self._lock:
            self._adjust(self._current_tick(time.monotonic()))
            if self._available <= 0:
                return 0
            taken = min(count, self._available)
            self._available -= taken
            return taken

    def wait(self, count: int) -> float:
        """Take ``count`` tokens, sleeping until they are due; return seconds slept."""
        if count <= 0:
            return 0.0
        with self._lock:
            now = time.monotonic()
            tick = self._current_tick(now)
            self._adjust(tick)
            self._available -= count
            if self._available >= 0:
                return 0.0
            end = self._start + (tick - self._available) * self.fill_interval
            delay = max(0.0, end - now)
        if delay:
            time.sleep(delay)
        return delay


class RequestRateLimitError(Exception):
    """Raised when a request arrives while the rate limit is exhausted."""

    def __init__(self, message: str = "request reached rate limit") -> None:
        super().__init__(message)


class RateLimitingPlugin:
    """Limits how many connections are accepted per unit of time."""

    def __init__(self, fill_interval: float, capacity: int) -> None:
        self.fill_interval = fill_interval
        self.capacity = capacity
        self._bucket = TokenBucket(fill_interval, capacity)

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        """Admit the connection only if a token is available."""
        return conn, self._bucket.take_available(1) > 0


class ReqRateLimitingPlugin:
    """Limits how many requests are processed per unit of time."""

    def __init__(self, fill_interval: float, capacity: int, block: bool = False) -> None:
        self.fill_interval = fill_interval
        self.capacity = capacity
        self.block = block
        self._bucket = TokenBucket(fill_interval, capacity)

    def pre_read_request(self, ctx: Any) -> None:
        """Wait for a token when blocking, otherwise raise if none is left."""
        if self.block:
            self._bucket.wait(1)
            return
        if self._bucket.take_available(1) != 1:
            raise RequestRateLimitError()