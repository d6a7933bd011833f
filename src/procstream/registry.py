"""Registry of running children.

Keeps the live children of one or more spawns, keyed by pid, so that an
application can list them or kill them all on shutdown:
- ``spawn(registry=...)`` registers the child
- the supervisor thread unregisters it after reporting termination
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, Optional

if TYPE_CHECKING:
    from .process import SharedChild

__all__ = ["ChildRegistry", "ChildInfo"]

logger = logging.getLogger(__name__)


@dataclass
class ChildInfo:
    """A registered child.

    Attributes:
        pid: OS process id
        program: Program the child was spawned from
        child: Shared OS handle
        created_at: Registration time
    """

    pid: int
    program: str
    child: "SharedChild"
    created_at: datetime = field(default_factory=datetime.now)

    def __repr__(self) -> str:
        elapsed = (datetime.now() - self.created_at).total_seconds()
        status = "running" if self.child.returncode is None else "exited"
        return (
            f"ChildInfo(pid={self.pid}, "
            f"program={self.program}, "
            f"status={status}, "
            f"elapsed={elapsed:.1f}s)"
        )


class ChildRegistry:
    """Thread-safe registry of running children.

    Supervisor threads unregister children concurrently with the caller,
    so every operation takes the internal lock.

    Example:
        ```python
        registry = ChildRegistry()
        rx, child = Command("server").spawn(registry=registry)

        if registry.active_count:
            killed = registry.kill_all()
        ```
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._children: Dict[int, ChildInfo] = {}
        self._on_empty_callbacks: list[Callable[[], None]] = []

    def register(self, program: str, child: "SharedChild") -> ChildInfo:
        """Register a running child.

        Raises:
            ValueError: If the pid is already registered
        """
        info = ChildInfo(pid=child.pid, program=program, child=child)
        with self._lock:
            if info.pid in self._children:
                raise ValueError(f"Child {info.pid} already registered")
            self._children[info.pid] = info
        logger.debug(f"Registered child: {info}")
        return info

    def unregister(self, pid: int) -> bool:
        """Unregister a child.

        Returns:
            Whether the pid was registered
        """
        with self._lock:
            info = self._children.pop(pid, None)
            callbacks = list(self._on_empty_callbacks) if not self._children else []
        if info is None:
            return False

        logger.debug(f"Unregistered child: {info}")
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error in on_empty callback: {e}")
        return True

    def get(self, pid: int) -> Optional[ChildInfo]:
        with self._lock:
            return self._children.get(pid)

    def kill_all(self) -> int:
        """Send the kill signal to every registered child still running.

        Returns:
            Number of children signalled
        """
        with self._lock:
            infos = list(self._children.values())

        killed = 0
        for info in infos:
            if info.child.returncode is not None:
                continue
            try:
                info.child.kill()
            except OSError as e:
                logger.warning(f"Failed to kill child {info.pid}: {e}")
                continue
            logger.info(f"Killed child: {info}")
            killed += 1

        if killed > 0:
            logger.info(f"Killed {killed} running child(ren)")

        return killed

    @property
    def active_count(self) -> int:
        """Number of registered children that have not exited."""
        with self._lock:
            return sum(1 for info in self._children.values() if info.child.returncode is None)

    def list_active(self) -> list[ChildInfo]:
        """Running children, oldest first."""
        with self._lock:
            active = [info for info in self._children.values() if info.child.returncode is None]
        return sorted(active, key=lambda x: x.created_at)

    def add_on_empty_callback(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` each time the last child is unregistered."""
        with self._lock:
            self._on_empty_callbacks.append(callback)

    def remove_on_empty_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._on_empty_callbacks:
                self._on_empty_callbacks.remove(callback)

    def __len__(self) -> int:
        with self._lock:
            return len(self._children)

    def __contains__(self, pid: int) -> bool:
        with self._lock:
            return pid in self._children
