"""Name resolution used by the HTTP connector.

A resolver is any object with an ``async resolve(name)`` method, or any
callable taking a :class:`Name`, that returns an iterable of
:class:`SocketAddr`.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import ipaddress
import socket
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class SocketAddr:
    """An IP address together with a port."""

    ip: IPAddress
    port: int
    flowinfo: int = 0
    scope_id: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.ip, str):
            object.__setattr__(self, "ip", ipaddress.ip_address(self.ip))
        if not isinstance(self.ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            raise TypeError(f"not an IP address: {self.ip!r}")
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")

    def is_ipv4(self) -> bool:
        return self.ip.version == 4

    def is_ipv6(self) -> bool:
        return self.ip.version == 6

    def with_port(self, port: int) -> "SocketAddr":
        """Return the same address with another port."""
        return dataclasses.replace(self, port=port)

    @property
    def family(self) -> int:
        return socket.AF_INET if self.is_ipv4() else socket.AF_INET6

    @property
    def sockaddr(self) -> tuple:
        """The address in the form the socket module expects."""
        if self.is_ipv4():
            return (str(self.ip), self.port)
        return (str(self.ip), self.port, self.flowinfo, self.scope_id)

    def __str__(self) -> str:
        if self.is_ipv4():
            return f"{self.ip}:{self.port}"
        if self.scope_id:
            return f"[{self.ip}%{self.scope_id}]:{self.port}"
        return f"[{self.ip}]:{self.port}"


def _from_sockaddr(sockaddr: tuple) -> SocketAddr:
    host = str(sockaddr[0]).split("%", 1)[0]
    ip = ipaddress.ip_address(host)
    if ip.version == 6 and len(sockaddr) >= 4:
        return SocketAddr(ip, sockaddr[1], sockaddr[2], sockaddr[3])
    return SocketAddr(ip, sockaddr[1])


class InvalidNameError(ValueError):
    """The given string was not a valid domain name."""

    def __init__(self) -> None:
        super().__init__("Not a valid domain name")


@dataclass(frozen=True)
class Name:
    """A domain name to resolve into IP addresses."""

    host: str

    @classmethod
    def from_str(cls, host: str) -> "Name":
        """Build a name from a string."""
        if not isinstance(host, str):
            raise InvalidNameError()
        return cls(host)

    def as_str(self) -> str:
        return self.host

    def __str__(self) -> str:
        return self.host

    def __repr__(self) -> str:
        return repr(self.host)


class SocketAddrs:
    """An ordered collection of socket addresses to try."""

    def __init__(self, addrs: Iterable[SocketAddr] = ()) -> None:
        self._addrs: tuple[SocketAddr, ...] = tuple(addrs)

    @classmethod
    def try_parse(cls, host: str, port: int) -> Optional["SocketAddrs"]:
        """Return the host as a single address if it is an IP literal."""
        if "%" in host:
            return None
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            return None
        return cls([SocketAddr(ip, port)])

    def split_by_preference(
        self,
        local_addr_ipv4: Optional[ipaddress.IPv4Address],
        local_addr_ipv6: Optional[ipaddress.IPv6Address],
    ) -> tuple["SocketAddrs", "SocketAddrs"]:
        """Split into preferred and fallback addresses.

        With only one local address family configured, only addresses of that
        family are kept. Otherwise the family of the first address is
        preferred and the rest fall back.
        """
        if local_addr_ipv4 is not None and local_addr_ipv6 is None:
            return SocketAddrs(a for a in self._addrs if a.is_ipv4()), SocketAddrs()
        if local_addr_ipv4 is None and local_addr_ipv6 is not None:
            return SocketAddrs(a for a in self._addrs if a.is_ipv6()), SocketAddrs()
        preferring_v6 = bool(self._addrs) and self._addrs[0].is_ipv6()
        preferred = [a for a in self._addrs if a.is_ipv6() == preferring_v6]
        fallback = [a for a in self._addrs if a.is_ipv6() != preferring_v6]
        return SocketAddrs(preferred), SocketAddrs(fallback)

    def is_empty(self) -> bool:
        return not self._addrs

    def __len__(self) -> int:
        return len(self._addrs)

    def __iter__(self) -> Iterator[SocketAddr]:
        return iter(self._addrs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SocketAddrs):
            return NotImplemented
        return self._addrs == other._addrs

    def __repr__(self) -> str:
        return f"SocketAddrs([{', '.join(str(a) for a in self._addrs)}])"


class GaiResolver:
    """A resolver using the system's getaddrinfo in a worker thread."""

    async def resolve(self, name: Name) -> SocketAddrs:
        """Resolve ``name``; raises OSError when the lookup fails."""
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(name.as_str(), 0, type=socket.SOCK_STREAM)
        return SocketAddrs(
            _from_sockaddr(info[4])
            for info in infos
            if info[0] in (socket.AF_INET, socket.AF_INET6)
        )

    def __repr__(self) -> str:
        return "GaiResolver"


async def resolve(resolver: Any, name: Name) -> Iterable[SocketAddr]:
    """Resolve ``name`` with ``resolver``.

    The resolver may have a ``resolve`` method or be a plain callable; its
    result may be awaitable.
    """
    method = getattr(resolver, "resolve", None)
    result = method(name) if method is not None else resolver(name)
    if inspect.isawaitable(result):
        result = await result
    return result