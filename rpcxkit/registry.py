"""Service registration in a key-value store, refreshed on a timer."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar

from rpcxkit.meta import convert_map_to_string, convert_meta_to_map
from rpcxkit.metrics import Registry

log = logging.getLogger(__name__)

_T = TypeVar("_T")

BASE_PATH_VALUE = b"rpcx_path"


class StoreError(Exception):
    """Raised when a key-value store operation fails."""


@dataclass(frozen=True)
class KVPair:
    """A key, its value and the index of the write that produced it."""

    key: str
    value: bytes
    last_index: int = 0


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode() if isinstance(value, str) else bytes(value)


class MemoryStore:
    """A thread-safe in-memory key-value store with per-key TTLs (seconds)."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[bytes, bool, float | None, int]] = {}
        self._index = 0
        self._lock = threading.Lock()
        self.closed = False

    def _check_open(self) -> None:
        if self.closed:
            raise StoreError("store is closed")

    def _live(self, key: str) -> tuple[bytes, bool, float | None, int] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires = entry[2]
        if expires is not None and time.monotonic() >= expires:
            del self._data[key]
            return None
        return entry

    def _write(self, key: str, value: bytes | str, is_dir: bool, ttl: float | None) -> KVPair:
        self._index += 1
        expires = time.monotonic() + ttl if ttl else None
        data = _as_bytes(value)
        self._data[key] = (data, is_dir, expires, self._index)
        return KVPair(key, data, self._index)

    def put(self, key: str, value: bytes | str, is_dir: bool = False, ttl: float | None = None) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl`` seconds if given."""
        with self._lock:
            self._check_open()
            self._write(key, value, is_dir, ttl)

    def atomic_put(
        self, key: str, value: bytes | str, is_dir: bool = False, ttl: float | None = None
    ) -> tuple[bool, KVPair]:
        """Create ``key`` only if it does not exist yet."""
        with self._lock:
            self._check_open()
            if self._live(key) is not None:
                raise StoreError(f"key exists: {key}")
            return True, self._write(key, value, is_dir, ttl)

    def get(self, key: str) -> KVPair:
        """Return the pair stored under ``key``."""
        with self._lock:
            self._check_open()
            entry = self._live(key)
            if entry is None:
                raise StoreError(f"key not found in store: {key}")
            return KVPair(key, entry[0], entry[3])

    def exists(self, key: str) -> bool:
        """Return whether ``key`` holds a live value."""
        with self._lock:
            self._check_open()
            return self._live(key) is not None

    def delete(self, key: str) -> None:
        """Remove ``key``."""
        with self._lock:
            self._check_open()
            if self._live(key) is None:
                raise StoreError(f"key not found in store: {key}")
            del self._data[key]

    def close(self) -> None:
        """Close the store; later operations raise StoreError."""
        with self._lock:
            self.closed = True


StoreFactory = Callable[[list, Any], Any]


@dataclass(eq=False)
class KVRegisterPlugin:
    """Registers services at ``base_path/name/service_address`` in a store.

    The store is ``kv``; when it is None, ``store_factory(servers, options)``
    creates it. ``update_interval`` is in seconds; when positive, a background
    thread refreshes every node at that interval with a TTL of twice it.
    """

    service_address: str = ""
    servers: list[str] = field(default_factory=list)
    base_path: str = ""
    metrics: Registry | None = None
    update_interval: float = 0.0
    options: Any = None
    kv: Any = None
    store_factory: StoreFactory | None = None
    services: list[str] = field(default_factory=list)

    kind: ClassVar[str] = "kv"

    _metas: dict[str, str] = field(init=False, repr=False, default_factory=dict)
    _metas_lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)
    _dying: threading.Event = field(init=False, repr=False, default_factory=threading.Event)
    _thread: threading.Thread | None = field(init=False, repr=False, default=None)

    @property
    def _ttl(self) -> float | None:
        return self.update_interval * 2 if self.update_interval > 0 else None

    def _ensure_store(self) -> None:
        if self.kv is not None:
            return
        if self.store_factory is None:
            log.error("cannot create %s registry: no store configured", self.kind)
            raise StoreError(f"cannot create {self.kind} registry: no store configured")
        try:
            self.kv = self.store_factory(self.servers, self.options)
        except Exception as exc:
            log.error("cannot create %s registry: %s", self.kind, exc)
            raise

    def _normalize_base_path(self) -> None:
        if not self.base_path:
            raise ValueError("base path must not be empty")
        if self.base_path.startswith("/"):
            self.base_path = self.base_path[1:]

    def _node_path(self, name: str) -> str:
        return f"{self.base_path}/{name}/{self.service_address}"

    def _store_op(self, path: str, op: Callable[[], _T]) -> _T:
        try:
            return op()
        except StoreError as exc:
            log.error("cannot create %s path %s: %s", self.kind, path, exc)
            raise

    def _put_dir(self, path: str, value: bytes) -> None:
        self._store_op(path, lambda: self.kv.put(path, value, True, None))

    def _prepare_service(self, name: str) -> None:
        self._ensure_store()
        self._normalize_base_path()
        self._put_dir(self.base_path, BASE_PATH_VALUE)
        self._put_dir(f"{self.base_path}/{name}", name.encode())

    @staticmethod
    def _check_name(name: str, action: str) -> None:
        if not name.strip():
            raise ValueError(f"{action} service `name` can't be empty")

    def _remember(self, name: str, metadata: str) -> None:
        self.services.append(name)
        with self._metas_lock:
            self._metas[name] = metadata

    def _extra_metrics(self) -> dict[str, str]:
        if self.metrics is None:
            return {}
        return {
            key: f"{self.metrics.get_or_register_meter(key).rate_mean():.2f}"
            for key in ("calls", "connections")
        }

    def start(self) -> None:
        """Create the base path and start the refresh thread if configured."""
        self._ensure_store()
        self._normalize_base_path()
        self._put_dir(self.base_path, BASE_PATH_VALUE)
        if self.update_interval > 0 and self._thread is None:
            self._dying.clear()
            self._thread = threading.Thread(
                target=self._run, name=f"{self.kind}-registry", daemon=True
            )
            self._thread.start()

    def _run(self) -> None:
        kv = self.kv
        try:
            while not self._dying.wait(self.update_interval):
                self.refresh()
        finally:
            kv.close()

    def refresh(self) -> None:
        """Rewrite every registered node with fresh metrics and TTL."""
        extra = self._extra_metrics()
        for name in list(self.services):
            path = self._node_path(name)
            try:
                pair = self.kv.get(path)
            except StoreError as exc:
                log.warning("can't get data of node: %s, will re-create, because of %s", path, exc)
                with self._metas_lock:
                    meta = self._metas.get(name, "")
                try:
                    self.kv.put(path, meta.encode(), False, self._ttl)
                except StoreError as put_exc:
                    log.error("cannot re-create %s path %s: %s", self.kind, path, put_exc)
                continue
            values = convert_meta_to_map(pair.value.decode(errors="replace"))
            values.update(extra)
            try:
                self.kv.put(path, convert_map_to_string(values).encode(), False, self._ttl)
            except StoreError as exc:
                log.error("cannot refresh %s path %s: %s", self.kind, path, exc)

    def stop(self) -> None:
        """Remove every registered node and stop the refresh thread."""
        self._ensure_store()
        self._normalize_base_path()
        for name in self.services:
            path = self._node_path(name)
            try:
                exist = self.kv.exists(path)
            except StoreError as exc:
                log.error("cannot delete path %s: %s", path, exc)
                continue
            if exist:
                try:
                    self.kv.delete(path)
                except StoreError as exc:
                    log.error("cannot delete path %s: %s", path, exc)
                    continue
                log.info("delete path %s", path)
        self._dying.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        """Count an accepted connection."""
        if self.metrics is not None:
            self.metrics.get_or_register_meter("connections").mark(1)
        return conn, True

    def pre_call(self, ctx: Any, service_path: str, service_method: str, args: Any) -> Any:
        """Count a call and pass its arguments through."""
        if self.metrics is not None:
            self.metrics.get_or_register_meter("calls").mark(1)
        return args

    def register(self, name: str, rcvr: Any, metadata: str = "") -> None:
        """Register service ``name`` with ``metadata`` in the store."""
        self._check_name(name, "Register")
        self._prepare_service(name)
        path = self._node_path(name)
        self._store_op(path, lambda: self.kv.put(path, metadata.encode(), False, self._ttl))
        self._remember(name, metadata)

    def register_function(self, service_name: str, fname: str, fn: Any, metadata: str = "") -> None:
        """Register a function by registering its service."""
        self.register(service_name, fn, metadata)

    def unregister(self, name: str) -> None:
        """Remove service ``name`` from the store and from the registered list."""
        if not self.services:
            return
        self._check_name(name, "Unregister")
        self._prepare_service(name)
        path = self._node_path(name)
        self._store_op(path, lambda: self.kv.delete(path))
        self.services = [s for s in self.services if s != name]
        with self._metas_lock:
            self._metas.pop(name, None)


@dataclass(eq=False)
class ConsulRegisterPlugin(KVRegisterPlugin):
    """Registers services in a Consul key-value store."""

    kind: ClassVar[str] = "consul"