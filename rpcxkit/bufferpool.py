"""A size-tiered pool of reusable byte buffers."""

from __future__ import annotations

import math
import threading


class _LevelPool:
    """Free list of buffers that all hold at least ``size`` bytes."""

    def __init__(self, size: int) -> None:
        self.size = size
        self._free: list[bytearray] = []
        self._lock = threading.Lock()

    def acquire(self) -> bytearray:
        with self._lock:
            if self._free:
                return self._free.pop()
        return bytearray(self.size)

    def release(self, buf: bytearray) -> None:
        with self._lock:
            self._free.append(buf)

    def __repr__(self) -> str:
        return f"_LevelPool(size={self.size})"


class LimitedPool:
    """Buffer pool with levels doubling from ``min_size`` up to ``max_size``.

    Buffers handed out by :meth:`get` are memoryviews over pooled bytearrays;
    the length of the underlying bytearray is the buffer's capacity.
    """

    _MULTIPLIER = 2

    def __init__(self, min_size: int, max_size: int) -> None:
        if min_size <= 0:
            raise ValueError("minSize must be positive")
        if max_size < min_size:
            raise ValueError("maxSize can't be less than minSize")
        self.min_size = min_size
        self.max_size = max_size
        self._pools: list[_LevelPool] = []
        cur = min_size
        while cur < max_size:
            self._pools.append(_LevelPool(cur))
            cur *= self._MULTIPLIER
        self._pools.append(_LevelPool(max_size))

    def find_pool(self, size: int) -> _LevelPool | None:
        """Return the smallest level able to serve a buffer of ``size`` bytes."""
        if size > self.max_size:
            return None
        idx = 0 if size <= 0 else math.ceil(math.log2(size / self.min_size))
        idx = max(idx, 0)
        if idx > len(self._pools) - 1:
            return None
        return self._pools[idx]

    def find_put_pool(self, size: int) -> _LevelPool | None:
        """Return the level a buffer of capacity ``size`` is returned to."""
        if size > self.max_size or size < self.min_size:
            return None
        idx = max(math.floor(math.log2(size / self.min_size)), 0)
        if idx > len(self._pools) - 1:
            return None
        return self._pools[idx]

    def get(self, size: int) -> memoryview:
        """Return a writable buffer of exactly ``size`` bytes."""
        if size < 0:
            raise ValueError("buffer size must not be negative")
        level = self.find_pool(size)
        if level is None:
            return memoryview(bytearray(size))
        return memoryview(level.acquire())[:size]

    def put(self, buf: memoryview | bytearray) -> None:
        """Give a buffer back to the pool; buffers that fit no level are dropped."""
        underlying = buf.obj if isinstance(buf, memoryview) else buf
        if not isinstance(underlying, bytearray):
            return
        level = self.find_put_pool(len(underlying))
        if level is None:
            return
        level.release(underlying)