"""Metadata describing an established connection."""

from __future__ import annotations

import abc
import logging
import threading
from enum import Enum
from typing import Any, Iterator, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Alpn(Enum):
    """Protocol negotiated through ALPN, if any."""

    H2 = "h2"
    NONE = "none"


class Extensions:
    """A map holding at most one value per exact type."""

    def __init__(self) -> None:
        self._values: dict[type, Any] = {}

    def insert(self, value: Any) -> Optional[Any]:
        """Store ``value`` under its type, returning the value it replaced."""
        key = type(value)
        previous = self._values.get(key)
        self._values[key] = value
        return previous

    def get(self, cls: Type[T]) -> Optional[T]:
        """Return the value stored for ``cls``, or None."""
        return self._values.get(cls)

    def __contains__(self, cls: object) -> bool:
        return cls in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values.values())

    def __repr__(self) -> str:
        return f"Extensions({list(self._values.values())!r})"


class PoisonPill:
    """A flag shared between copies of a connection's metadata."""

    def __init__(self) -> None:
        self._poisoned = threading.Event()

    def poison(self) -> None:
        self._poisoned.set()

    def is_poisoned(self) -> bool:
        return self._poisoned.is_set()

    def __repr__(self) -> str:
        return f"PoisonPill@{id(self):#x} {{ poisoned: {str(self.is_poisoned()).lower()} }}"


class Connection(abc.ABC):
    """A transport returned by a connector."""

    @abc.abstractmethod
    def connected(self) -> "Connected":
        """Return metadata describing the connection."""


class Connected:
    """Extra information about the connected transport."""

    def __init__(self) -> None:
        self.alpn = Alpn.NONE
        self._proxied = False
        self._extras: tuple[Any, ...] = ()
        self.poison_pill = PoisonPill()

    def proxy(self, is_proxied: bool) -> "Connected":
        """Mark whether the transport leads to an HTTP proxy."""
        self._proxied = bool(is_proxied)
        return self

    def is_proxied(self) -> bool:
        return self._proxied

    def extra(self, value: Any) -> "Connected":
        """Add a value to be placed in the extensions of every response.

        Earlier extras are kept; a later value of the same type wins.
        """
        self._extras = (*self._extras, value)
        return self

    @property
    def has_extra(self) -> bool:
        return bool(self._extras)

    def get_extras(self, extensions: Extensions) -> None:
        """Copy the extra connection information into ``extensions``."""
        for value in self._extras:
            extensions.insert(value)

    def negotiated_h2(self) -> "Connected":
        """Record that HTTP/2 was negotiated."""
        self.alpn = Alpn.H2
        return self

    def is_negotiated_h2(self) -> bool:
        return self.alpn is Alpn.H2

    def poison(self) -> None:
        """Poison this connection so the pool will not reuse it."""
        self.poison_pill.poison()
        logger.debug(
            "connection was poisoned. this connection will not be reused "
            "for subsequent requests (poison_pill=%r)",
            self.poison_pill,
        )

    def is_poisoned(self) -> bool:
        return self.poison_pill.is_poisoned()

    def copy(self) -> "Connected":
        """Return a copy sharing the same poison pill."""
        other = Connected()
        other.alpn = self.alpn
        other._proxied = self._proxied
        other._extras = self._extras
        other.poison_pill = self.poison_pill
        return other

    def __repr__(self) -> str:
        return (
            f"Connected(alpn={self.alpn.name}, is_proxied={self._proxied}, "
            f"extras={len(self._extras)}, poisoned={self.is_poisoned()})"
        )