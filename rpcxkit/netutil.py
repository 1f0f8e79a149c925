"""Network helpers: free ports, rpcx addresses and external IP lookup."""

from __future__ import annotations

import ipaddress
import re
import socket

import psutil

_PORT_RE = re.compile(r"[+-]?[0-9]+")


def get_free_port() -> int:
    """Return a TCP port on 127.0.0.1 that is free at the moment of the call."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _split_host_port(hostport: str) -> tuple[str, str]:
    colon = hostport.rfind(":")
    if colon < 0:
        raise ValueError(f"address {hostport}: missing port in address")
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"address {hostport}: missing ']' in address")
        if end + 1 == len(hostport):
            raise ValueError(f"address {hostport}: missing port in address")
        if end + 1 != colon:
            if hostport[end + 1] == ":":
                raise ValueError(f"address {hostport}: too many colons in address")
            raise ValueError(f"address {hostport}: missing port in address")
        host = hostport[1:end]
        start_open, start_close = 1, end + 1
    else:
        host = hostport[:colon]
        if ":" in host:
            raise ValueError(f"address {hostport}: too many colons in address")
        start_open, start_close = 0, 0
    if "[" in hostport[start_open:]:
        raise ValueError(f"address {hostport}: unexpected '[' in address")
    if "]" in hostport[start_close:]:
        raise ValueError(f"address {hostport}: unexpected ']' in address")
    return host, hostport[colon + 1 :]


def parse_rpcx_address(addr: str) -> tuple[str, str, int]:
    """Split an address such as ``tcp@127.0.0.1:8972`` into network, host and port."""
    at = addr.find("@")
    if at <= 0:
        raise ValueError(f"invalid rpcx address: {addr}")
    network, rest = addr[:at], addr[at + 1 :]
    host, port_text = _split_host_port(rest)
    if not _PORT_RE.fullmatch(port_text):
        raise ValueError(f"invalid port {port_text!r} in address {addr}")
    return network, host, int(port_text)


def _interface_ips():
    """Yield addresses of interfaces that are up and not loopback, in order."""
    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        stat = stats.get(name)
        if stat is None or not stat.isup:
            continue
        flags = getattr(stat, "flags", "") or ""
        if "loopback" in flags.split(","):
            continue
        for addr in addrs:
            if addr.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            text = addr.address.split("%", 1)[0]
            try:
                ip = ipaddress.ip_address(text)
            except ValueError:
                continue
            if ip.is_loopback:
                continue
            yield ip


def external_ipv4() -> str:
    """Return the first external IPv4 address of this host."""
    for ip in _interface_ips():
        if ip.version == 4:
            return str(ip)
    raise OSError("are you connected to the network?")


def external_ipv6() -> str:
    """Return the first external address of this host that has a 16-byte form.

    Every IPv4 address has one too, so an IPv4 address listed first is returned.
    """
    for ip in _interface_ips():
        return str(ip)
    raise OSError("are you connected to the network?")