import pytest

from rpcxkit.metrics import Registry
from rpcxkit.registry import MemoryStore, StoreError
from rpcxkit.zookeeper import ZooKeeperRegisterPlugin

NODE = "rpcx_test/Arith/tcp@127.0.0.1:8972"


class Arith:
    def mul(self, ctx, args, reply):
        reply.C = args.A * args.B


def make_plugin(store):
    return ZooKeeperRegisterPlugin(
        service_address="tcp@127.0.0.1:8972",
        servers=["127.0.0.1:2181"],
        base_path="/rpcx_test",
        metrics=Registry(),
        update_interval=60.0,
        kv=store,
    )


def test_zookeeper_registry():
    store = MemoryStore()
    r = make_plugin(store)
    r.start()
    r.register("Arith", Arith(), "")
    assert len(r.services) == 1
    r.stop()
    assert store.closed is True


def test_register_writes_node():
    store = MemoryStore()
    r = make_plugin(store)
    r.register("Arith", Arith(), "group=z")
    assert store.get(NODE).value == b"group=z"
    assert store.get("rpcx_test").value == b"rpcx_path"


def test_register_twice_fails():
    store = MemoryStore()
    r = make_plugin(store)
    r.register("Arith", Arith(), "")
    with pytest.raises(StoreError, match="key exists"):
        r.register("Arith", Arith(), "")
    assert r.services == ["Arith"]


def test_register_empty_name():
    r = make_plugin(MemoryStore())
    with pytest.raises(ValueError, match="can't be empty"):
        r.register("", Arith(), "")


def test_unregister_then_register_again():
    store = MemoryStore()
    r = make_plugin(store)
    r.register("Arith", Arith(), "a=1")
    r.unregister("Arith")
    assert r.services == []
    r.register("Arith", Arith(), "a=2")
    assert store.get(NODE).value == b"a=2"