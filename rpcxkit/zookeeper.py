"""Service registration in a ZooKeeper-style key-value store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from rpcxkit.registry import KVRegisterPlugin


@dataclass(eq=False)
class ZooKeeperRegisterPlugin(KVRegisterPlugin):
    """Registers services in ZooKeeper; a node is created only if absent."""

    kind: ClassVar[str] = "zk"

    def register(self, name: str, rcvr: Any, metadata: str = "") -> None:
        """Register service ``name``, failing if its node already exists."""
        self._check_name(name, "Register")
        self._prepare_service(name)
        path = self._node_path(name)
        self._store_op(
            path, lambda: self.kv.atomic_put(path, metadata.encode(), False, self._ttl)
        )
        self._remember(name, metadata)