"""Server plugins that admit or refuse connections by remote IP address."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Union

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _remote_host(conn: Any) -> str | None:
    """Return the remote host of a connection, or None when it has none."""
    try:
        peer = conn.getpeername()
    except OSError:
        return None
    if not isinstance(peer, tuple) or len(peer) < 2:
        return None
    return str(peer[0])


def _parse_ip(host: str) -> IPAddress | None:
    if "%" in host:
        return None
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def _in_any(ip: IPAddress | None, networks: list[IPNetwork]) -> bool:
    if ip is None:
        return False
    candidates = [ip]
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        candidates.append(ip.ipv4_mapped)
    return any(c in net for net in networks for c in candidates if c.version == net.version)


def _networks(masks: list[Any]) -> list[IPNetwork]:
    return [
        m if isinstance(m, (ipaddress.IPv4Network, ipaddress.IPv6Network))
        else ipaddress.ip_network(m, strict=False)
        for m in masks
    ]


@dataclass
class BlacklistPlugin:
    """Refuses connections from listed addresses and networks."""

    blacklist: set[str] = field(default_factory=set)
    blacklist_mask: list[IPNetwork] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.blacklist = set(self.blacklist)
        self.blacklist_mask = _networks(self.blacklist_mask)

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        """Return the connection and whether it may proceed."""
        host = _remote_host(conn)
        if host is None:
            return conn, True
        if host in self.blacklist:
            return conn, False
        if _in_any(_parse_ip(host), self.blacklist_mask):
            return conn, False
        return conn, True


@dataclass
class WhitelistPlugin:
    """Admits only connections from listed addresses and networks."""

    whitelist: set[str] = field(default_factory=set)
    whitelist_mask: list[IPNetwork] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.whitelist = set(self.whitelist)
        self.whitelist_mask = _networks(self.whitelist_mask)

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        """Return the connection and whether it may proceed."""
        host = _remote_host(conn)
        if host is None:
            return conn, False
        if host in self.whitelist:
            return conn, True
        if _in_any(_parse_ip(host), self.whitelist_mask):
            return conn, True
        return conn, False