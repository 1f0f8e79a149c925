"""Gzip compression of message payloads."""

from __future__ import annotations

import gzip
import zlib


def zip_bytes(data: bytes) -> bytes:
    """Compress ``data`` into a gzip stream."""
    return gzip.compress(bytes(data), mtime=0)


def unzip_bytes(data: bytes) -> bytes:
    """Decompress a gzip stream; raise ValueError if it is not valid gzip."""
    if not data:
        raise ValueError("empty gzip stream")
    try:
        return gzip.decompress(bytes(data))
    except (OSError, EOFError, zlib.error) as exc:
        raise ValueError(f"invalid gzip data: {exc}") from exc