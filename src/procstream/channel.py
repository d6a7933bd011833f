"""Bounded event channel.

Multi-producer / single-consumer hand-off between the background threads
of a spawn and the caller:
- ``send()`` blocks while the buffer is full (backpressure on the pipe)
- ``recv()`` blocks until an event arrives or every sender is closed
- closing the receiver releases blocked senders instead of deadlocking
- leaving an iteration early, or dropping the receiver, closes it
- async iteration runs the blocking receive in an anyio worker thread
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections import deque
from typing import AsyncIterator, Iterator

import anyio

from .types import CommandEvent

__all__ = ["EventChannel", "EventSender", "EventReceiver", "channel"]

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1

# Upper bound for how long an abandoned async waiter thread lingers
_ASYNC_POLL_INTERVAL = 0.25


class EventChannel:
    """Shared state of one channel. Use ``channel()`` to create the ends."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self.capacity = capacity
        self._cond = threading.Condition()
        self._buffer: deque[CommandEvent] = deque()
        self._senders = 0
        self._receiver_closed = False

    def _add_sender(self) -> None:
        with self._cond:
            self._senders += 1

    def _drop_sender(self) -> None:
        with self._cond:
            self._senders -= 1
            if self._senders == 0:
                self._cond.notify_all()

    def _send(self, event: CommandEvent) -> bool:
        with self._cond:
            while len(self._buffer) >= self.capacity and not self._receiver_closed:
                self._cond.wait()
            if self._receiver_closed:
                return False
            self._buffer.append(event)
            self._cond.notify_all()
            return True

    def _ready(self) -> bool:
        return bool(self._buffer) or self._senders == 0 or self._receiver_closed

    def _wait_ready(self, timeout: float | None) -> bool:
        with self._cond:
            return self._cond.wait_for(self._ready, timeout=timeout)

    def _poll(self) -> tuple[bool, CommandEvent | None]:
        """Non-blocking receive: (ready, event). event is None when closed."""
        with self._cond:
            if self._buffer:
                event = self._buffer.popleft()
                self._cond.notify_all()
                return True, event
            return self._ready(), None

    def _recv(self, timeout: float | None) -> CommandEvent | None:
        with self._cond:
            if not self._cond.wait_for(self._ready, timeout=timeout):
                raise TimeoutError("no event received within timeout")
            if self._buffer:
                event = self._buffer.popleft()
                self._cond.notify_all()
                return event
            return None

    def _close_receiver(self) -> None:
        with self._cond:
            self._receiver_closed = True
            dropped = len(self._buffer)
            self._buffer.clear()
            self._cond.notify_all()
        if dropped:
            logger.debug(f"Receiver closed, dropped {dropped} buffered event(s)")

    @property
    def is_closed(self) -> bool:
        """True once every sender is closed and the buffer is drained."""
        with self._cond:
            return (self._senders == 0 and not self._buffer) or self._receiver_closed


class EventSender:
    """Sending end. Each background thread owns its own sender."""

    def __init__(self, chan: EventChannel) -> None:
        self._chan = chan
        self._closed = False
        chan._add_sender()

    def clone(self) -> "EventSender":
        """Create another sender on the same channel."""
        return EventSender(self._chan)

    def send(self, event: CommandEvent) -> bool:
        """Hand an event to the receiver, blocking while the buffer is full.

        Returns:
            False if the receiver is gone and the event was discarded
        """
        if self._closed:
            raise RuntimeError("send() on a closed sender")
        return self._chan._send(event)

    def close(self) -> None:
        """Drop this sender. The channel closes when the last one drops."""
        if not self._closed:
            self._closed = True
            self._chan._drop_sender()


class EventReceiver:
    """Receiving end, consumed by the caller.

    Example:
        rx, child = Command("cat").args(["notes.txt"]).spawn()
        for event in rx:
            ...

        # or inside an async function
        async for event in rx:
            ...
    """

    def __init__(self, chan: EventChannel) -> None:
        self._chan = chan
        # A receiver dropped without close() must not strand the senders
        self._finalizer = weakref.finalize(self, chan._close_receiver)

    def recv(self, timeout: float | None = None) -> CommandEvent | None:
        """Block until the next event.

        Args:
            timeout: Seconds to wait, None to wait forever

        Returns:
            The next event, or None once the channel is closed

        Raises:
            TimeoutError: If timeout expires first
        """
        return self._chan._recv(timeout)

    async def recv_async(self) -> CommandEvent | None:
        """Async variant of ``recv()``, safe under asyncio and trio.

        The worker thread only waits for readiness; the event itself is
        taken on the caller's side, so cancelling never loses an event.
        """
        while True:
            ready, event = self._chan._poll()
            if ready:
                return event
            await anyio.to_thread.run_sync(
                self._chan._wait_ready,
                _ASYNC_POLL_INTERVAL,
                abandon_on_cancel=True,
            )

    def close(self) -> None:
        """Stop receiving. Blocked and later sends are discarded."""
        self._finalizer()

    @property
    def is_closed(self) -> bool:
        return self._chan.is_closed

    def __iter__(self) -> Iterator[CommandEvent]:
        """Iterate until the channel closes. Leaving the loop early closes the receiver."""
        try:
            while True:
                event = self.recv()
                if event is None:
                    return
                yield event
        finally:
            self.close()

    async def __aiter__(self) -> AsyncIterator[CommandEvent]:
        """Async twin of ``__iter__``; cancellation also closes the receiver."""
        try:
            while True:
                event = await self.recv_async()
                if event is None:
                    return
                yield event
        finally:
            self.close()

    def __enter__(self) -> "EventReceiver":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def channel(capacity: int = DEFAULT_CAPACITY) -> tuple[EventSender, EventReceiver]:
    """Create a channel and return its (sender, receiver) ends."""
    chan = EventChannel(capacity)
    return EventSender(chan), EventReceiver(chan)
