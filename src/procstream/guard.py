"""Completion guard.

A readers/writer style barrier used inverted: each pipe reader holds the
guard in shared mode for its whole lifetime, and the supervisor takes it
in exclusive mode once, which only succeeds after every shared holder has
released. This keeps the terminated event behind the last output record.
"""

from __future__ import annotations

import contextlib
import threading
from typing import Iterator

__all__ = ["CompletionGuard"]


class CompletionGuard:
    """Counting barrier over shared holders.

    Example:
        guard = CompletionGuard()
        guard.acquire_shared()          # before starting the reader thread
        ...                             # reader thread: drains, then
        guard.release_shared()
        with guard.exclusive():         # supervisor: blocks until drained
            send_terminated()
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._shared = 0
        self._exclusive = False

    @property
    def shared_count(self) -> int:
        """Number of shared holders still active."""
        with self._cond:
            return self._shared

    def acquire_shared(self) -> None:
        """Take a shared hold. Blocks while an exclusive hold is active."""
        with self._cond:
            while self._exclusive:
                self._cond.wait()
            self._shared += 1

    def release_shared(self) -> None:
        """Release a shared hold."""
        with self._cond:
            if self._shared <= 0:
                raise RuntimeError("release_shared() without a shared hold")
            self._shared -= 1
            if self._shared == 0:
                self._cond.notify_all()

    def acquire_exclusive(self, timeout: float | None = None) -> bool:
        """Take the exclusive hold once all shared holders are gone.

        Args:
            timeout: Seconds to wait, None to wait forever

        Returns:
            Whether the exclusive hold was taken
        """
        with self._cond:
            acquired = self._cond.wait_for(
                lambda: self._shared == 0 and not self._exclusive,
                timeout=timeout,
            )
            if acquired:
                self._exclusive = True
            return acquired

    def release_exclusive(self) -> None:
        """Release the exclusive hold."""
        with self._cond:
            if not self._exclusive:
                raise RuntimeError("release_exclusive() without an exclusive hold")
            self._exclusive = False
            self._cond.notify_all()

    @contextlib.contextmanager
    def shared(self) -> Iterator[None]:
        self.acquire_shared()
        try:
            yield
        finally:
            self.release_shared()

    @contextlib.contextmanager
    def exclusive(self) -> Iterator[None]:
        self.acquire_exclusive()
        try:
            yield
        finally:
            self.release_exclusive()
