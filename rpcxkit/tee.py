"""A server plugin that copies incoming connection data to a writer."""

from __future__ import annotations

from typing import Any


class TeeConn:
    """Wraps a connection and copies everything received to a writer."""

    def __init__(self, conn: Any, writer: Any) -> None:
        self.conn = conn
        self.writer = writer

    def recv(self, bufsize: int) -> bytes:
        """Receive from the connection, copying the data to the writer."""
        data = self.conn.recv(bufsize)
        if data and self.writer is not None:
            try:
                self.writer.write(data)
            except (OSError, ValueError):
                pass
        return data

    def __getattr__(self, name: str) -> Any:
        return getattr(self.conn, name)


class TeeConnPlugin:
    """Wraps accepted connections so their incoming data is copied."""

    def __init__(self, writer: Any = None) -> None:
        self.writer = writer

    def update(self, writer: Any) -> None:
        """Set the writer for connections accepted from now on; None stops copying."""
        self.writer = writer

    def handle_conn_accept(self, conn: Any) -> tuple[TeeConn, bool]:
        """Return the wrapped connection; it is always admitted."""
        return TeeConn(conn, self.writer), True