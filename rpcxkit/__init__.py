"""Server-side plugins, key-value service registration, metrics and helpers for RPC services."""

__version__ = "0.1.0"

__all__ = [
    "access",
    "alias",
    "bufferpool",
    "compress",
    "context",
    "meta",
    "metrics",
    "netutil",
    "ratelimit",
    "redisreg",
    "registry",
    "share",
    "tee",
    "zookeeper",
]