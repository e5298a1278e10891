"""Single-consumer event loop shared by the server and client drivers.

Inbound frames, timer ticks and operator intents are all posted to one
queue. ``run`` takes one event at a time and awaits its handler to
completion before taking the next, so handlers never interleave and the
state they mutate needs no locking.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from .transport import Datagram

logger = logging.getLogger(__name__)


@dataclass
class Inbound:
    """A frame received from the transport."""

    datagram: Datagram


@dataclass
class TimerFired:
    """A periodic timer elapsed."""

    name: str


class _Stop:
    pass


EventHandler = Callable[[Any], Awaitable[None]]


class EventLoop:
    """Queue of events drained by exactly one consumer."""

    def __init__(self):
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timers: dict[str, asyncio.Task] = {}
        self._running = False

    def bind(self) -> None:
        """Attach to the running asyncio loop.

        Call before a transport can deliver frames, so posts from its
        network thread are handed over with call_soon_threadsafe.
        """
        self._loop = asyncio.get_running_loop()

    def post(self, event: Any) -> None:
        """Queue an event. Safe to call from any thread once bound."""
        loop = self._loop
        if loop is None:
            self._queue.put_nowait(event)
            return

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is loop:
            self._queue.put_nowait(event)
        else:
            loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def post_datagram(self, datagram: Datagram) -> None:
        """Transport receiver callback."""
        self.post(Inbound(datagram))

    def add_timer(self, name: str, interval_seconds: float) -> None:
        """Start a periodic timer that posts TimerFired(name) every interval.

        Must be called from within the running asyncio loop.
        """
        self._loop = asyncio.get_running_loop()
        self.cancel_timer(name)
        self._timers[name] = asyncio.create_task(self._tick(name, interval_seconds))
        logger.debug(f"Timer {name!r} armed every {interval_seconds}s")

    def cancel_timer(self, name: str) -> None:
        task = self._timers.pop(name, None)
        if task:
            task.cancel()

    async def _tick(self, name: str, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.post(TimerFired(name))

    async def run(self, handler: EventHandler) -> None:
        """Process events until stop() is called.

        Args:
            handler: Coroutine function called once per event.
        """
        self._loop = asyncio.get_running_loop()
        self._running = True
        logger.debug("Event loop running")

        while self._running:
            event = await self._queue.get()
            if isinstance(event, _Stop):
                break
            await self._dispatch(handler, event)

        logger.debug("Event loop stopped")

    async def process_pending(self, handler: EventHandler) -> int:
        """Process every event already queued, then return.

        Returns:
            Number of events processed.
        """
        self._loop = asyncio.get_running_loop()
        processed = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if isinstance(event, _Stop):
                continue
            await self._dispatch(handler, event)
            processed += 1
        return processed

    async def _dispatch(self, handler: EventHandler, event: Any) -> None:
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Error handling {type(event).__name__}: {e}", exc_info=True)

    def stop(self) -> None:
        """Stop run() after the current event and cancel all timers."""
        self._running = False
        for name in list(self._timers):
            self.cancel_timer(name)
        self.post(_Stop())

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._running
