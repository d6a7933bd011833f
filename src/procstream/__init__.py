"""procstream - event-driven child process streaming.

Spawn a program, stream its stdout/stderr as discrete events, write to its
stdin, and observe a single authoritative termination event.

Environment variables:
    PROCSTREAM_SIDECAR_DIR: Sidecar lookup directory
    PROCSTREAM_LOG_DEBUG: Debug log file (default false)
    PROCSTREAM_KILL_ON_EXIT: CLI kills its child on Ctrl+C (default true)

Usage:
    python -m procstream -- ls -la
"""

__version__ = "0.1.0"

from .channel import EventReceiver
from .errors import (
    ChildConsumedError,
    CommandConsumedError,
    CurrentExeHasNoParentError,
    ProcessIOError,
    ProcStreamError,
    SpawnError,
)
from .process import Command, CommandChild
from .registry import ChildRegistry
from .types import (
    CommandEvent,
    ErrorEvent,
    ExitStatus,
    Output,
    StderrEvent,
    StdoutEvent,
    TerminatedEvent,
    TerminatedPayload,
)

__all__ = [
    "__version__",
    "Command",
    "CommandChild",
    "EventReceiver",
    "ChildRegistry",
    "CommandEvent",
    "StdoutEvent",
    "StderrEvent",
    "ErrorEvent",
    "TerminatedEvent",
    "TerminatedPayload",
    "ExitStatus",
    "Output",
    "ProcStreamError",
    "SpawnError",
    "CurrentExeHasNoParentError",
    "CommandConsumedError",
    "ProcessIOError",
    "ChildConsumedError",
]
