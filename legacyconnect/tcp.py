"""Opening TCP connections, with a happy eyeballs fallback between families."""

from __future__ import annotations

import asyncio
import errno
import ipaddress
import logging
import socket
import sys
from typing import Any, Optional

from .connect_config import ConnectError, ConnectorConfig, HttpInfo
from .connected import Connected, Connection
from .dns import IPAddress, SocketAddr, SocketAddrs

logger = logging.getLogger(__name__)

# setsockopt takes a C int; larger buffer sizes are clamped to its maximum.
_MAX_SOCKOPT_INT = 0x7FFFFFFF


def _socket_addr(sockaddr: Any) -> SocketAddr:
    host = str(sockaddr[0]).split("%", 1)[0]
    ip = ipaddress.ip_address(host)
    if ip.version == 6 and len(sockaddr) >= 4:
        return SocketAddr(ip, sockaddr[1], sockaddr[2], sockaddr[3])
    return SocketAddr(ip, sockaddr[1])


class TcpConnection(Connection):
    """An established TCP stream."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.reader = reader
        self.writer = writer

    @classmethod
    async def open(cls, sock: socket.socket) -> "TcpConnection":
        """Wrap an already connected socket in asyncio streams."""
        reader, writer = await asyncio.open_connection(sock=sock)
        return cls(reader, writer)

    @property
    def socket(self) -> Any:
        return self.writer.get_extra_info("socket")

    def set_nodelay(self, nodelay: bool) -> None:
        """Set TCP_NODELAY on the underlying socket."""
        self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(bool(nodelay)))

    def connected(self) -> Connected:
        """Return metadata carrying the stream's addresses as HttpInfo."""
        connected = Connected()
        peer = self.writer.get_extra_info("peername")
        local = self.writer.get_extra_info("sockname")
        if peer is None or local is None:
            return connected
        try:
            info = HttpInfo(remote_addr=_socket_addr(peer), local_addr=_socket_addr(local))
        except (ValueError, TypeError, IndexError):
            return connected
        return connected.extra(info)

    async def close(self) -> None:
        """Close the stream and wait until it is closed."""
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass

    async def __aenter__(self) -> "TcpConnection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"TcpConnection(peer={self.writer.get_extra_info('peername')!r}, "
            f"local={self.writer.get_extra_info('sockname')!r})"
        )


def bind_local_address(
    sock: socket.socket,
    dst_addr: SocketAddr,
    local_addr_ipv4: Optional[IPAddress],
    local_addr_ipv6: Optional[IPAddress],
) -> None:
    """Bind ``sock`` to the configured local address of ``dst_addr``'s family.

    Raises OSError when binding fails.
    """
    if dst_addr.is_ipv4() and local_addr_ipv4 is not None:
        sock.bind((str(local_addr_ipv4), 0))
    elif dst_addr.is_ipv6() and local_addr_ipv6 is not None:
        sock.bind((str(local_addr_ipv6), 0, 0, 0))
    elif sys.platform == "win32":
        # Windows requires a socket be bound before calling connect.
        if dst_addr.is_ipv4():
            sock.bind(("0.0.0.0", 0))
        else:
            sock.bind(("::", 0, 0, 0))


def _bind_interface(sock: socket.socket, addr: SocketAddr, interface: str) -> None:
    bind_to_device = getattr(socket, "SO_BINDTODEVICE", None)
    if bind_to_device is not None:
        try:
            sock.setsockopt(socket.SOL_SOCKET, bind_to_device, interface.encode())
        except OSError as e:
            raise ConnectError("tcp bind interface error", e) from e
        return

    try:
        index = socket.if_nametoindex(interface)
    except OSError as e:
        raise ConnectError("error converting interface name to index", e) from e

    if addr.is_ipv4():
        level, option = socket.IPPROTO_IP, getattr(socket, "IP_BOUND_IF", None)
    else:
        level, option = socket.IPPROTO_IPV6, getattr(socket, "IPV6_BOUND_IF", None)
    if option is None:
        raise ConnectError(
            "tcp bind interface error",
            OSError(errno.ENOPROTOOPT, "binding to an interface is not supported"),
        )
    try:
        sock.setsockopt(level, option, index)
    except OSError as e:
        raise ConnectError("tcp bind interface error", e) from e


def _configure(sock: socket.socket, addr: SocketAddr, config: ConnectorConfig) -> None:
    try:
        sock.setblocking(False)
    except OSError as e:
        raise ConnectError("tcp set_nonblocking error", e) from e

    keepalive = config.tcp_keepalive_config.socket_options()
    if keepalive:
        try:
            for level, option, value in keepalive:
                sock.setsockopt(level, option, value)
        except OSError as e:
            logger.warning("tcp set_keepalive error: %s", e)

    if config.interface is not None:
        _bind_interface(sock, addr, config.interface)

    if config.tcp_user_timeout is not None:
        user_timeout = getattr(socket, "TCP_USER_TIMEOUT", None)
        if user_timeout is None:
            logger.warning("tcp set_tcp_user_timeout error: not supported on this platform")
        else:
            try:
                sock.setsockopt(
                    socket.IPPROTO_TCP, user_timeout, int(config.tcp_user_timeout * 1000)
                )
            except OSError as e:
                logger.warning("tcp set_tcp_user_timeout error: %s", e)

    try:
        bind_local_address(sock, addr, config.local_address_ipv4, config.local_address_ipv6)
    except OSError as e:
        raise ConnectError("tcp bind local error", e) from e

    if config.reuse_address:
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as e:
            logger.warning("tcp set_reuse_address error: %s", e)

    if config.send_buffer_size is not None:
        try:
            sock.setsockopt(
                socket.SOL_SOCKET,
                socket.SO_SNDBUF,
                min(config.send_buffer_size, _MAX_SOCKOPT_INT),
            )
        except OSError as e:
            logger.warning("tcp set_buffer_size error: %s", e)

    if config.recv_buffer_size is not None:
        try:
            sock.setsockopt(
                socket.SOL_SOCKET,
                socket.SO_RCVBUF,
                min(config.recv_buffer_size, _MAX_SOCKOPT_INT),
            )
        except OSError as e:
            logger.warning("tcp set_recv_buffer_size error: %s", e)


def open_socket(addr: SocketAddr, config: ConnectorConfig) -> socket.socket:
    """Create a non-blocking TCP socket for ``addr``, configured and bound.

    Raises ConnectError when the socket cannot be created or set up.
    """
    try:
        sock = socket.socket(addr.family, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    except OSError as e:
        raise ConnectError("tcp open error", e) from e
    try:
        _configure(sock, addr, config)
    except BaseException:
        sock.close()
        raise
    return sock


async def _connect_socket(
    sock: socket.socket, addr: SocketAddr, connect_timeout: Optional[float]
) -> socket.socket:
    loop = asyncio.get_running_loop()
    try:
        if connect_timeout is None:
            await loop.sock_connect(sock, addr.sockaddr)
        else:
            await asyncio.wait_for(loop.sock_connect(sock, addr.sockaddr), connect_timeout)
    except asyncio.TimeoutError as e:
        sock.close()
        raise ConnectError(
            "tcp connect error", OSError(errno.ETIMEDOUT, "connection timed out")
        ) from e
    except OSError as e:
        sock.close()
        raise ConnectError("tcp connect error", e) from e
    except BaseException:
        sock.close()
        raise
    return sock


async def connect_addr(
    addr: SocketAddr, config: ConnectorConfig, connect_timeout: Optional[float]
) -> socket.socket:
    """Open a socket for ``addr`` and connect it, within ``connect_timeout`` seconds."""
    sock = open_socket(addr, config)
    return await _connect_socket(sock, addr, connect_timeout)


class ConnectingTcpRemote:
    """Tries a list of addresses one after another."""

    def __init__(self, addrs: SocketAddrs, connect_timeout: Optional[float]) -> None:
        self.addrs = addrs
        if connect_timeout is None or len(addrs) == 0:
            self.connect_timeout: Optional[float] = None
        else:
            # The overall timeout is shared out evenly across the addresses.
            self.connect_timeout = connect_timeout / len(addrs)

    async def connect(self, config: ConnectorConfig) -> socket.socket:
        """Return the first socket that connects.

        Errors while opening a socket are raised at once; connect errors move
        on to the next address, and the last one is raised if none connects.
        """
        err: Optional[ConnectError] = None
        for addr in self.addrs:
            logger.debug("connecting to %s", addr)
            sock = open_socket(addr, config)
            try:
                connected = await _connect_socket(sock, addr, self.connect_timeout)
            except ConnectError as e:
                logger.debug("connect error for %s: %r", addr, e)
                err = e
                continue
            logger.debug("connected to %s", addr)
            return connected

        if err is not None:
            raise err
        raise ConnectError(
            "tcp connect error", OSError(errno.ENOTCONN, "Network unreachable")
        )

    def __repr__(self) -> str:
        return f"ConnectingTcpRemote({self.addrs!r}, connect_timeout={self.connect_timeout!r})"


def _discard(task: "asyncio.Future[socket.socket]") -> None:
    if not task.done():
        task.cancel()
    elif not task.cancelled() and task.exception() is None:
        task.result().close()


class ConnectingTcp:
    """Connects to preferred addresses, racing a fallback family after a delay."""

    def __init__(self, remote_addrs: SocketAddrs, config: ConnectorConfig) -> None:
        self.config = config
        self.fallback: Optional[ConnectingTcpRemote] = None
        self.fallback_delay: Optional[float] = None

        delay = config.happy_eyeballs_timeout
        if delay is None:
            self.preferred = ConnectingTcpRemote(remote_addrs, config.connect_timeout)
            return

        preferred, fallback = remote_addrs.split_by_preference(
            config.local_address_ipv4, config.local_address_ipv6
        )
        self.preferred = ConnectingTcpRemote(preferred, config.connect_timeout)
        if not fallback.is_empty():
            self.fallback = ConnectingTcpRemote(fallback, config.connect_timeout)
            self.fallback_delay = delay

    async def connect(self) -> socket.socket:
        """Return a connected socket, or raise the last ConnectError."""
        if self.fallback is None:
            return await self.preferred.connect(self.config)

        preferred = asyncio.ensure_future(self.preferred.connect(self.config))
        tasks = [preferred]
        keep: Optional[asyncio.Future] = None
        try:
            done, _ = await asyncio.wait({preferred}, timeout=self.fallback_delay)
            if preferred in done:
                if preferred.exception() is None:
                    keep = preferred
                    return preferred.result()
                return await self.fallback.connect(self.config)

            fallback = asyncio.ensure_future(self.fallback.connect(self.config))
            tasks.append(fallback)
            done, _ = await asyncio.wait(
                {preferred, fallback}, return_when=asyncio.FIRST_COMPLETED
            )
            first, other = (preferred, fallback) if preferred in done else (fallback, preferred)
            if first.exception() is None:
                keep = first
                return first.result()
            keep = other
            return await other
        finally:
            for task in tasks:
                if task is not keep:
                    _discard(task)

    def __repr__(self) -> str:
        return (
            f"ConnectingTcp(preferred={self.preferred!r}, fallback={self.fallback!r}, "
            f"fallback_delay={self.fallback_delay!r})"
        )