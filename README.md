# rpcxkit

Server-side building blocks for RPC services: connection and request
plugins, service registration in key-value stores, an in-process metrics
registry, and a handful of helpers.

## Installation

```
pip install rpcxkit
```

To run the tests:

```
pip install "rpcxkit[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `rpcxkit.bufferpool` | `LimitedPool`, a pool of reusable byte buffers in sizes that double from a minimum to a maximum |
| `rpcxkit.compress` | `zip_bytes` and `unzip_bytes` for gzip; `unzip_bytes` raises `ValueError` on bad input |
| `rpcxkit.meta` | `copy_meta`, `convert_meta_to_map`, `convert_map_to_string` for URL-query metadata |
| `rpcxkit.netutil` | `get_free_port`, `parse_rpcx_address`, `external_ipv4`, `external_ipv6` |
| `rpcxkit.share` | shared key names, `ContextKey`, `CODECS` with `register_codec`, and the file-transfer and stream argument dataclasses |
| `rpcxkit.context` | `Context` with local values over a parent, `with_value`, `with_local_value`, `SpanContext` and `get_opencensus_span_context` |
| `rpcxkit.metrics` | `Registry`, `Meter`, `Counter`, `Histogram` and `MetricsPlugin` |
| `rpcxkit.alias` | `AliasPlugin`, which serves services under other names |
| `rpcxkit.access` | `BlacklistPlugin` and `WhitelistPlugin`, which filter connections by peer IP address or network |
| `rpcxkit.ratelimit` | `TokenBucket`, `RateLimitingPlugin`, `ReqRateLimitingPlugin` and `RequestRateLimitError` |
| `rpcxkit.tee` | `TeeConnPlugin` and `TeeConn`, which copy received bytes to a writer |
| `rpcxkit.registry` | `MemoryStore`, `KVPair`, `StoreError`, `KVRegisterPlugin`, `ConsulRegisterPlugin` |
| `rpcxkit.zookeeper` | `ZooKeeperRegisterPlugin`, which creates a service node only if it does not exist yet |
| `rpcxkit.redisreg` | `RedisStore`, a store over a `redis` client, and `RedisRegisterPlugin` |

## Examples

Parse a service address:

```python
from rpcxkit.netutil import parse_rpcx_address

network, host, port = parse_rpcx_address("tcp@127.0.0.1:8972")
# ("tcp", "127.0.0.1", 8972)
```

Round-trip service metadata:

```python
from rpcxkit.meta import convert_map_to_string, convert_meta_to_map

text = convert_map_to_string({"group": "a", "weight": "10"})
assert text == "group=a&weight=10"
assert convert_meta_to_map(text) == {"group": "a", "weight": "10"}
```

Compress a payload:

```python
from rpcxkit.compress import zip_bytes, unzip_bytes

assert unzip_bytes(zip_bytes(b"hello")) == b"hello"
```

Limit how fast requests are read:

```python
from rpcxkit.ratelimit import ReqRateLimitingPlugin, RequestRateLimitError

limiter = ReqRateLimitingPlugin(fill_interval=0.1, capacity=10, block=False)
try:
    limiter.pre_read_request(None)
except RequestRateLimitError:
    ...  # reject the request
```

With `block=True`, `pre_read_request` sleeps until a token is due instead
of raising.

Serve a service under another name:

```python
from rpcxkit.alias import AliasPlugin

aliases = AliasPlugin()
aliases.alias("anewpath", "method", "Arith", "Mul")
```

`post_read_request` rewrites a request whose `service_path` and
`service_method` match an alias, and `pre_write_response` puts the alias
back on the request and the response.

Register services in a store and keep their metadata fresh:

```python
from rpcxkit.metrics import Registry
from rpcxkit.registry import ConsulRegisterPlugin, MemoryStore

plugin = ConsulRegisterPlugin(
    service_address="tcp@127.0.0.1:8972",
    base_path="/rpcx_test",
    metrics=Registry(),
    update_interval=60.0,
    kv=MemoryStore(),
)
plugin.start()
plugin.register("Arith", None, "")
assert plugin.services == ["Arith"]
plugin.stop()
```

Services are stored at `base_path/name/service_address`, with a leading
`/` removed from `base_path`. When `update_interval` is positive, a
background thread calls `refresh` at that interval; it rewrites every node
with a TTL of twice the interval and, when `metrics` is set, adds the mean
rates of the `calls` and `connections` meters. `stop` deletes the nodes and
ends the thread.

A registry plugin needs a store: pass one as `kv`, or pass a
`store_factory` that is called with `(servers, options)`. Without either,
`start` and `register` raise `StoreError`. `RedisRegisterPlugin` has a
default factory that connects a `redis.Redis` client to the first entry of
`servers` (`host:port`, port 6379 if left out); its `options` are keyword
arguments for the client plus an optional `prefix` for every key.

## What this package does not do

- It contains no RPC server or client. The plugins are objects with hook
  methods (`handle_conn_accept`, `pre_read_request`, `post_read_request`,
  `pre_write_response`, `post_write_response`, `register`, ...) that a
  server of your own calls.
- `CODECS` starts empty; no serialization formats are provided.
- There is no Consul or ZooKeeper client. `ConsulRegisterPlugin` and
  `ZooKeeperRegisterPlugin` work with `MemoryStore` or any object with the
  same `put`, `atomic_put`, `get`, `exists`, `delete` and `close` methods.
  Only Redis has a ready-made store, `RedisStore`.
- Metrics stay in process; nothing reports them to an external system.