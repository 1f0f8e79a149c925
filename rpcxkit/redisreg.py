"""Service registration in Redis."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, ClassVar

import redis

from rpcxkit.registry import BASE_PATH_VALUE, KVPair, KVRegisterPlugin, StoreError

log = logging.getLogger(__name__)

_DEFAULT_PORT = 6379
_NOT_A_FILE = "Not a file"


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode() if isinstance(value, str) else bytes(value)


class RedisStore:
    """Key-value store over a Redis client; every key gets ``prefix`` in front."""

    def __init__(self, client: Any, prefix: str = "") -> None:
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return self.prefix + key

    def _set(self, key: str, value: bytes | str, ttl: float | None, nx: bool) -> Any:
        px = int(ttl * 1000) if ttl else None
        try:
            return self.client.set(self._key(key), _to_bytes(value), px=px, nx=nx)
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def put(self, key: str, value: bytes | str, is_dir: bool = False, ttl: float | None = None) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl`` seconds if given."""
        self._set(key, value, ttl, False)

    def atomic_put(
        self, key: str, value: bytes | str, is_dir: bool = False, ttl: float | None = None
    ) -> tuple[bool, KVPair]:
        """Create ``key`` only if it does not exist yet."""
        if not self._set(key, value, ttl, True):
            raise StoreError(f"key exists: {key}")
        return True, KVPair(key, _to_bytes(value))

    def get(self, key: str) -> KVPair:
        """Return the pair stored under ``key``."""
        try:
            value = self.client.get(self._key(key))
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc
        if value is None:
            raise StoreError(f"key not found in store: {key}")
        return KVPair(key, _to_bytes(value))

    def exists(self, key: str) -> bool:
        """Return whether ``key`` holds a value."""
        try:
            return bool(self.client.exists(self._key(key)))
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def delete(self, key: str) -> None:
        """Remove ``key``."""
        try:
            removed = self.client.delete(self._key(key))
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc
        if not removed:
            raise StoreError(f"key not found in store: {key}")

    def close(self) -> None:
        """Close the underlying client."""
        self.client.close()


def _split_server(server: str) -> tuple[str, int]:
    host, sep, port = server.rpartition(":")
    if not sep:
        return server, _DEFAULT_PORT
    return host, int(port)


def _default_factory(servers: list[str], options: Any) -> RedisStore:
    if not servers:
        raise StoreError("cannot create redis registry: no redis servers given")
    host, port = _split_server(servers[0])
    kwargs = dict(options or {})
    prefix = kwargs.pop("prefix", "")
    return RedisStore(redis.Redis(host=host, port=port, **kwargs), prefix)


@dataclass(eq=False)
class RedisRegisterPlugin(KVRegisterPlugin):
    """Registers services in Redis; directory nodes that are not files are tolerated.

    ``options`` are keyword arguments for the Redis client, plus an optional
    ``prefix`` for every key. The base path is used as given.
    """

    kind: ClassVar[str] = "redis"

    def __post_init__(self) -> None:
        if self.store_factory is None:
            self.store_factory = _default_factory

    def _normalize_base_path(self) -> None:
        return None

    def _put_dir_tolerant(self, path: str, value: bytes) -> None:
        try:
            self.kv.put(path, value, True, None)
        except StoreError as exc:
            if _NOT_A_FILE in str(exc):
                return
            log.error("cannot create redis path %s: %s", path, exc)
            raise

    def _prepare_redis_service(self, name: str) -> None:
        self._ensure_store()
        self._put_dir_tolerant(self.base_path, BASE_PATH_VALUE)
        self._put_dir_tolerant(f"{self.base_path}/{name}", name.encode())

    def start(self) -> None:
        """Create the base path and start the refresh thread if configured."""
        self._ensure_store()
        self._put_dir_tolerant(self.base_path, BASE_PATH_VALUE)
        if self.update_interval > 0 and self._thread is None:
            self._dying.clear()
            self._thread = threading.Thread(
                target=self._run, name="redis-registry", daemon=True
            )
            self._thread.start()

    def register(self, name: str, rcvr: Any, metadata: str = "") -> None:
        """Register service ``name`` with ``metadata`` in Redis."""
        self._check_name(name, "Register")
        self._prepare_redis_service(name)
        path = self._node_path(name)
        self._store_op(path, lambda: self.kv.put(path, metadata.encode(), False, self._ttl))
        self._remember(name, metadata)

    def unregister(self, name: str) -> None:
        """Remove service ``name`` from Redis and from the registered list."""
        if not self.services:
            return
        self._check_name(name, "Register")
        self._prepare_redis_service(name)
        path = self._node_path(name)
        self._store_op(path, lambda: self.kv.delete(path))
        self.services = [s for s in self.services if s != name]
        with self._metas_lock:
            self._metas.pop(name, None)