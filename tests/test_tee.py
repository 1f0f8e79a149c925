import io
import socket

import pytest

from rpcxkit.tee import TeeConn, TeeConnPlugin


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


def test_received_data_is_copied(pair):
    a, b = pair
    sink = io.BytesIO()
    conn, ok = TeeConnPlugin(sink).handle_conn_accept(a)
    b.sendall(b"hello")
    assert ok is True
    assert conn.recv(5) == b"hello"
    assert sink.getvalue() == b"hello"


def test_no_writer_no_copy(pair):
    a, b = pair
    conn, _ = TeeConnPlugin(None).handle_conn_accept(a)
    b.sendall(b"data")
    assert conn.recv(4) == b"data"
    assert conn.writer is None


def test_update_affects_new_connections_only(pair):
    a, b = pair
    first, second = io.BytesIO(), io.BytesIO()
    plugin = TeeConnPlugin(first)
    old_conn, _ = plugin.handle_conn_accept(a)
    plugin.update(second)
    b.sendall(b"xy")
    assert old_conn.recv(2) == b"xy"
    assert first.getvalue() == b"xy"
    assert second.getvalue() == b""
    new_conn, _ = plugin.handle_conn_accept(a)
    assert new_conn.writer is second


def test_attributes_are_delegated(pair):
    a, _ = pair
    conn, _ = TeeConnPlugin(None).handle_conn_accept(a)
    assert conn.fileno() == a.fileno()


def test_writer_errors_are_ignored(pair):
    a, b = pair

    class BrokenWriter:
        def write(self, data):
            raise OSError("disk full")

    conn = TeeConn(a, BrokenWriter())
    b.sendall(b"ok")
    assert conn.recv(2) == b"ok"