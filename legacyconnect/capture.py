"""Capture the connection metadata used to serve a request."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Optional

from .connected import Connected, Extensions


class _Watch:
    """A single-value channel whose receivers can wait for a change."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.value: Optional[Connected] = None
        self.closed = False
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def _wake(self) -> None:
        waiters, self._waiters = self._waiters, []
        for loop, fut in waiters:
            loop.call_soon_threadsafe(_resolve, fut)

    def send(self, value: Connected) -> None:
        with self._lock:
            self.value = value
            self._wake()

    def close(self) -> None:
        with self._lock:
            self.closed = True
            self._wake()

    def subscribe(self) -> Optional[asyncio.Future]:
        loop = asyncio.get_running_loop()
        with self._lock:
            if self.closed:
                return None
            fut = loop.create_future()
            self._waiters.append((loop, fut))
            return fut


def _resolve(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


class CaptureConnectionExtension:
    """Sending side, stored in a request's extensions."""

    def __init__(self, watch: _Watch) -> None:
        self._watch = watch

    def set(self, connected: Connected) -> None:
        """Publish the metadata of the established connection."""
        self._watch.send(connected.copy())

    def close(self) -> None:
        """Drop the sending side; waiting receivers stop waiting."""
        self._watch.close()


class CaptureConnection:
    """Receiving side that exposes the captured connection metadata."""

    def __init__(self, watch: _Watch) -> None:
        self._watch = watch

    def connection_metadata(self) -> Optional[Connected]:
        """Return the connection metadata, if available."""
        return self._watch.value

    async def wait_for_connection_metadata(self) -> Optional[Connected]:
        """Wait until the connection is established.

        Returns None if the sending side is closed without a connection.
        """
        if self._watch.value is not None:
            return self._watch.value
        fut = self._watch.subscribe()
        if fut is not None:
            await fut
        return self._watch.value

    def __repr__(self) -> str:
        return f"CaptureConnection({self._watch.value!r})"


def new_capture_pair() -> tuple[CaptureConnectionExtension, CaptureConnection]:
    """Create the sending and receiving halves of a capture."""
    watch = _Watch()
    return CaptureConnectionExtension(watch), CaptureConnection(watch)


def capture_connection(request: Any) -> CaptureConnection:
    """Capture the connection for ``request``.

    ``request`` is either an ``Extensions`` map or an object carrying one in
    its ``extensions`` attribute.
    """
    extensions = request if isinstance(request, Extensions) else request.extensions
    tx, rx = new_capture_pair()
    extensions.insert(tx)
    return rx