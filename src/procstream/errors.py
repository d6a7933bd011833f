"""procstream exception classes.

Spawn failures are raised synchronously by ``Command.spawn()``; failures
after a successful spawn surface either as events (pipe reads, waiting)
or as ProcessIOError (stdin writes, kill).
"""

from __future__ import annotations

__all__ = [
    "ProcStreamError",
    "SpawnError",
    "CurrentExeHasNoParentError",
    "CommandConsumedError",
    "ProcessIOError",
    "ChildConsumedError",
]


class ProcStreamError(Exception):
    """Base exception for procstream."""
    pass


class SpawnError(ProcStreamError):
    """The process could not be started.

    Attributes:
        program: Program that failed to start
        message: Error message
    """

    def __init__(self, program: str, message: str) -> None:
        self.program = program
        self.message = message
        super().__init__(f"failed to spawn {program!r}: {message}")


class CurrentExeHasNoParentError(SpawnError):
    """The running executable has no parent directory to look up sidecars in."""

    def __init__(self, program: str) -> None:
        super().__init__(program, "current executable has no parent directory")


class CommandConsumedError(ProcStreamError):
    """A Command was used again after it was spawned."""
    pass


class ProcessIOError(ProcStreamError):
    """Writing to, or signalling, a running child failed."""
    pass


class ChildConsumedError(ProcessIOError):
    """The child handle was already consumed by ``kill()``."""
    pass
