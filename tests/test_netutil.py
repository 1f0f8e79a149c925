import socket
from types import SimpleNamespace
from unittest import mock

import pytest

from rpcxkit import netutil
from rpcxkit.netutil import (
    external_ipv4,
    external_ipv6,
    get_free_port,
    parse_rpcx_address,
)


def _addr(family, address):
    return SimpleNamespace(family=family, address=address, netmask=None, broadcast=None, ptp=None)


def _stat(isup=True, flags="up,broadcast,running"):
    return SimpleNamespace(isup=isup, flags=flags)


def _patched(addrs, stats):
    return mock.patch.multiple(
        netutil.psutil,
        net_if_addrs=mock.Mock(return_value=addrs),
        net_if_stats=mock.Mock(return_value=stats),
    )


def test_get_free_port_is_bindable():
    port = get_free_port()
    assert 0 < port < 65536
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", port))
        assert sock.getsockname()[1] == port


@pytest.mark.parametrize(
    "addr, expected",
    [
        ("tcp@127.0.0.1:8972", ("tcp", "127.0.0.1", 8972)),
        ("quic@192.168.1.1:9981", ("quic", "192.168.1.1", 9981)),
        ("tcp@[::1]:80", ("tcp", "::1", 80)),
        ("tcp@localhost:8972", ("tcp", "localhost", 8972)),
    ],
)
def test_parse_rpcx_address(addr, expected):
    assert parse_rpcx_address(addr) == expected


@pytest.mark.parametrize(
    "addr",
    [
        "127.0.0.1:8972",
        "@127.0.0.1:8972",
        "tcp@127.0.0.1",
        "tcp@::1:80",
        "tcp@127.0.0.1:abc",
        "tcp@127.0.0.1:",
        "tcp@[::1]",
    ],
)
def test_parse_rpcx_address_errors(addr):
    with pytest.raises(ValueError):
        parse_rpcx_address(addr)


def test_external_ipv4_skips_loopback_and_down():
    addrs = {
        "lo": [_addr(socket.AF_INET, "127.0.0.1")],
        "eth0": [_addr(socket.AF_INET, "198.51.100.7")],
        "eth1": [_addr(socket.AF_INET6, "2001:db8::5"), _addr(socket.AF_INET, "192.0.2.10")],
    }
    stats = {
        "lo": _stat(flags="up,loopback,running"),
        "eth0": _stat(isup=False),
        "eth1": _stat(),
    }
    with _patched(addrs, stats):
        assert external_ipv4() == "192.0.2.10"
        assert external_ipv6() == "2001:db8::5"


def test_external_ipv6_strips_zone():
    addrs = {"eth0": [_addr(socket.AF_INET6, "fe80::1%eth0")]}
    with _patched(addrs, {"eth0": _stat()}):
        assert external_ipv6() == "fe80::1"
        with pytest.raises(OSError):
            external_ipv4()


def test_external_ipv6_accepts_ipv4_first():
    addrs = {"eth0": [_addr(socket.AF_INET, "192.0.2.10"), _addr(socket.AF_INET6, "2001:db8::5")]}
    with _patched(addrs, {"eth0": _stat()}):
        assert external_ipv6() == "192.0.2.10"


def test_no_network_raises():
    addrs = {"lo": [_addr(socket.AF_INET, "127.0.0.1"), _addr(socket.AF_INET6, "::1")]}
    with _patched(addrs, {"lo": _stat(flags="up,loopback,running")}):
        with pytest.raises(OSError, match="connected to the network"):
            external_ipv4()
        with pytest.raises(OSError, match="connected to the network"):
            external_ipv6()