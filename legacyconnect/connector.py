"""The HTTP connector: resolves a destination and opens a TCP connection to it."""

from __future__ import annotations

import dataclasses
import datetime
import ipaddress
import logging
from typing import Any, Optional, Union
from urllib.parse import SplitResult

from .connect_config import ConnectError, ConnectorConfig, _parse_uri, get_host_port, set_port
from .dns import GaiResolver, Name, SocketAddrs, resolve
from .tcp import ConnectingTcp, TcpConnection

logger = logging.getLogger(__name__)

Duration = Union[float, int, datetime.timedelta]
AnyIP = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]


def _seconds(value: Optional[Duration]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    return float(value)


def _ip(value: AnyIP) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    return ipaddress.ip_address(value)


class HttpConnector:
    """A connector for the ``http`` scheme.

    Resolves names with the given resolver (the system resolver by default)
    and connects over TCP. Connections carry an ``HttpInfo`` extra with the
    transport's addresses.

    Setters never affect copies made earlier with :func:`copy.copy`.
    """

    def __init__(self, resolver: Any = None) -> None:
        self.resolver = resolver if resolver is not None else GaiResolver()
        self.config = ConnectorConfig()

    def _update(self, **changes: Any) -> None:
        self.config = dataclasses.replace(self.config, **changes)

    def _update_keepalive(self, **changes: Any) -> None:
        keepalive = dataclasses.replace(self.config.tcp_keepalive_config, **changes)
        self._update(tcp_keepalive_config=keepalive)

    def enforce_http(self, is_enforced: bool) -> None:
        """Require every destination to use the ``http`` scheme (default on)."""
        self._update(enforce_http=bool(is_enforced))

    def set_keepalive(self, time: Optional[Duration]) -> None:
        """Idle time before TCP keepalive probes are sent; None disables it."""
        self._update_keepalive(time=_seconds(time))

    def set_keepalive_interval(self, interval: Optional[Duration]) -> None:
        """Time between unacknowledged keepalive probes."""
        self._update_keepalive(interval=_seconds(interval))

    def set_keepalive_retries(self, retries: Optional[int]) -> None:
        """Number of unacknowledged probes before the peer is given up."""
        self._update_keepalive(retries=None if retries is None else int(retries))

    def set_nodelay(self, nodelay: bool) -> None:
        """Set ``TCP_NODELAY`` on every socket (default off)."""
        self._update(nodelay=bool(nodelay))

    def set_send_buffer_size(self, size: Optional[int]) -> None:
        """Set ``SO_SNDBUF`` on every socket."""
        self._update(send_buffer_size=size)

    def set_recv_buffer_size(self, size: Optional[int]) -> None:
        """Set ``SO_RCVBUF`` on every socket."""
        self._update(recv_buffer_size=size)

    def set_local_address(self, addr: Optional[AnyIP]) -> None:
        """Bind sockets to ``addr`` before connecting; None unbinds."""
        v4 = v6 = None
        if addr is not None:
            ip = _ip(addr)
            if ip.version == 4:
                v4 = ip
            else:
                v6 = ip
        self._update(local_address_ipv4=v4, local_address_ipv6=v6)

    def set_local_addresses(self, addr_ipv4: AnyIP, addr_ipv6: AnyIP) -> None:
        """Bind sockets to the local address of the destination's family."""
        v4, v6 = _ip(addr_ipv4), _ip(addr_ipv6)
        if v4.version != 4:
            raise ValueError(f"not an IPv4 address: {addr_ipv4!r}")
        if v6.version != 6:
            raise ValueError(f"not an IPv6 address: {addr_ipv6!r}")
        self._update(local_address_ipv4=v4, local_address_ipv6=v6)

    def set_connect_timeout(self, dur: Optional[Duration]) -> None:
        """Overall connect timeout, shared evenly across resolved addresses."""
        self._update(connect_timeout=_seconds(dur))

    def set_happy_eyeballs_timeout(self, dur: Optional[Duration]) -> None:
        """Delay before the other address family is tried in parallel.

        None disables parallel attempts. Default is 0.3 seconds.
        """
        self._update(happy_eyeballs_timeout=_seconds(dur))

    def set_reuse_address(self, reuse_address: bool) -> "HttpConnector":
        """Set ``SO_REUSEADDR`` on every socket (default off)."""
        self._update(reuse_address=bool(reuse_address))
        return self

    def set_interface(self, interface: str) -> "HttpConnector":
        """Bind sockets to the named network interface."""
        interface = str(interface)
        if "\0" in interface:
            raise ValueError("interface name should not have nulls in it")
        self._update(interface=interface)
        return self

    def set_tcp_user_timeout(self, time: Optional[Duration]) -> None:
        """Set ``TCP_USER_TIMEOUT`` on every socket."""
        self._update(tcp_user_timeout=_seconds(time))

    async def connect(self, dst: Union[str, SplitResult]) -> TcpConnection:
        """Connect to the destination URI and return the open connection.

        Raises ConnectError when the URI is not acceptable, the name cannot be
        resolved, or no address accepts the connection.
        """
        config = self.config
        host, port = get_host_port(config, dst)
        host = host.lstrip("[").rstrip("]")

        addrs = SocketAddrs.try_parse(host, port)
        if addrs is None:
            explicit = _parse_uri(dst).port is not None
            try:
                resolved = await resolve(self.resolver, Name.from_str(host))
                addrs = SocketAddrs(set_port(addr, port, explicit) for addr in resolved)
            except ConnectError:
                raise
            except Exception as e:
                raise ConnectError.dns(e) from e

        sock = await ConnectingTcp(addrs, config).connect()
        try:
            conn = await TcpConnection.open(sock)
        except BaseException:
            sock.close()
            raise

        try:
            conn.set_nodelay(config.nodelay)
        except OSError as e:
            logger.warning("tcp set_nodelay error: %s", e)
        return conn

    async def __call__(self, dst: Union[str, SplitResult]) -> TcpConnection:
        return await self.connect(dst)

    def __repr__(self) -> str:
        return "HttpConnector"