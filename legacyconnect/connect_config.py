"""Configuration, errors and address helpers for the HTTP connector."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Union
from urllib.parse import SplitResult, urlsplit

from .dns import IPAddress, SocketAddr

logger = logging.getLogger(__name__)

INVALID_NOT_HTTP = "invalid URL, scheme is not http"
INVALID_MISSING_SCHEME = "invalid URL, scheme is missing"
INVALID_MISSING_HOST = "invalid URL, host is missing"


class ConnectError(Exception):
    """An error raised while establishing a connection."""

    def __init__(self, msg: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(msg)
        self.msg = msg
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def dns(cls, cause: BaseException) -> "ConnectError":
        """An error raised while resolving the destination's name."""
        return cls("dns error", cause)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.msg}: {self.cause}"
        return self.msg

    def __repr__(self) -> str:
        if self.cause is not None:
            return f"ConnectError({self.msg!r}, {self.cause!r})"
        return repr(self.msg)


def _keepalive_idle_option() -> Optional[int]:
    idle = getattr(socket, "TCP_KEEPIDLE", None)
    if idle is None:
        idle = getattr(socket, "TCP_KEEPALIVE", None)
    return idle


@dataclass
class TcpKeepaliveConfig:
    """TCP keepalive settings; durations are in seconds."""

    time: Optional[float] = None
    interval: Optional[float] = None
    retries: Optional[int] = None

    def socket_options(self) -> Optional[list[tuple[int, int, int]]]:
        """Return ``(level, option, value)`` triples for ``setsockopt``.

        Returns None when nothing is configured. Settings the platform cannot
        express are left out.
        """
        dirty = False
        options: list[tuple[int, int, int]] = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
        if self.time is not None:
            dirty = True
            idle = _keepalive_idle_option()
            if idle is not None:
                options.append((socket.IPPROTO_TCP, idle, int(self.time)))
        if self.interval is not None and hasattr(socket, "TCP_KEEPINTVL"):
            dirty = True
            options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, int(self.interval)))
        if self.retries is not None and hasattr(socket, "TCP_KEEPCNT"):
            dirty = True
            options.append((socket.IPPROTO_TCP, socket.TCP_KEEPCNT, int(self.retries)))
        return options if dirty else None


@dataclass(frozen=True)
class HttpInfo:
    """Transport information placed on responses by the HTTP connector."""

    remote_addr: SocketAddr
    local_addr: SocketAddr


@dataclass
class ConnectorConfig:
    """Settings shared by the connections an HTTP connector opens.

    Durations are in seconds.
    """

    connect_timeout: Optional[float] = None
    enforce_http: bool = True
    happy_eyeballs_timeout: Optional[float] = 0.3
    tcp_keepalive_config: TcpKeepaliveConfig = field(default_factory=TcpKeepaliveConfig)
    local_address_ipv4: Optional[IPAddress] = None
    local_address_ipv6: Optional[IPAddress] = None
    nodelay: bool = False
    reuse_address: bool = False
    send_buffer_size: Optional[int] = None
    recv_buffer_size: Optional[int] = None
    interface: Optional[str] = None
    tcp_user_timeout: Optional[float] = None


class _UriParts(NamedTuple):
    scheme: Optional[str]
    host: Optional[str]
    port: Optional[int]


def _split_authority(netloc: str) -> tuple[Optional[str], Optional[int]]:
    hostport = netloc.rpartition("@")[2]
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"invalid IPv6 authority: {netloc!r}")
        host, rest = hostport[1:end], hostport[end + 1 :]
        if rest and not rest.startswith(":"):
            raise ValueError(f"invalid authority: {netloc!r}")
        port_text = rest[1:]
    else:
        host, _, port_text = hostport.partition(":")
    port: Optional[int] = None
    if port_text:
        if not port_text.isdigit() or int(port_text) > 0xFFFF:
            raise ValueError(f"invalid port: {port_text!r}")
        port = int(port_text)
    return (host or None), port


def _parse_uri(dst: Union[str, SplitResult]) -> _UriParts:
    """Split a URI into scheme, host (without brackets) and explicit port."""
    if isinstance(dst, SplitResult):
        dst = dst.geturl()
    if "://" in dst:
        parts = urlsplit(dst)
        host, port = _split_authority(parts.netloc)
        return _UriParts(parts.scheme.lower() or None, host, port)
    if dst.startswith("/"):
        return _UriParts(None, None, None)
    host, port = _split_authority(dst)
    return _UriParts(None, host, port)


def get_host_port(config: ConnectorConfig, dst: Union[str, SplitResult]) -> tuple[str, int]:
    """Return the host and port to connect to for ``dst``.

    Raises ConnectError when the scheme is not allowed or the host is missing.
    """
    uri = _parse_uri(dst)
    logger.debug(
        "Http::connect; scheme=%r, host=%r, port=%r", uri.scheme, uri.host, uri.port
    )
    if config.enforce_http:
        if uri.scheme != "http":
            raise ConnectError(INVALID_NOT_HTTP)
    elif uri.scheme is None:
        raise ConnectError(INVALID_MISSING_SCHEME)

    if uri.host is None:
        raise ConnectError(INVALID_MISSING_HOST)

    if uri.port is not None:
        port = uri.port
    elif uri.scheme == "https":
        port = 443
    else:
        port = 80
    return uri.host, port


def set_port(addr: SocketAddr, host_port: int, explicit: bool) -> SocketAddr:
    """Apply the URI's port to a resolved address.

    An explicit port always wins; otherwise a non-zero port from the resolver
    is kept and a zero port is replaced by the scheme's default.
    """
    if explicit or addr.port == 0:
        return addr.with_port(host_port)
    return addr