"""Event and result types.

procstream core types

CommandEvent is a closed, discriminated union keyed on ``kind``:
- stdout / stderr: one record of raw bytes (separator stripped)
- error: an I/O or wait failure, as a message
- terminated: the single authoritative exit report
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

__all__ = [
    "TerminatedPayload",
    "StdoutEvent",
    "StderrEvent",
    "ErrorEvent",
    "TerminatedEvent",
    "CommandEvent",
    "COMMAND_EVENT_ADAPTER",
    "ExitStatus",
    "Output",
    "NEWLINE_BYTE",
]

NEWLINE_BYTE = b"\n"

_EVENT_CONFIG = ConfigDict(
    frozen=True,
    extra="forbid",
    ser_json_bytes="base64",
    val_json_bytes="base64",
)


class TerminatedPayload(BaseModel):
    """Payload of a TerminatedEvent.

    Attributes:
        code: Exit code, None when the process was killed by a signal
        signal: Terminating signal number (POSIX only)
    """

    model_config = _EVENT_CONFIG

    code: int | None = None
    signal: int | None = None

    @classmethod
    def from_returncode(cls, returncode: int, *, posix: bool = True) -> "TerminatedPayload":
        """Build a payload from a ``Popen.returncode``.

        On POSIX a negative returncode ``-N`` means "killed by signal N".
        """
        if posix and returncode < 0:
            return cls(code=None, signal=-returncode)
        return cls(code=returncode, signal=None)


class StdoutEvent(BaseModel):
    """Stdout bytes up to a newline (\\n) or carriage return (\\r)."""

    model_config = _EVENT_CONFIG

    kind: Literal["stdout"] = "stdout"
    data: bytes


class StderrEvent(BaseModel):
    """Stderr bytes up to a newline (\\n) or carriage return (\\r)."""

    model_config = _EVENT_CONFIG

    kind: Literal["stderr"] = "stderr"
    data: bytes


class ErrorEvent(BaseModel):
    """A pipe read failed, or waiting for the process failed."""

    model_config = _EVENT_CONFIG

    kind: Literal["error"] = "error"
    message: str


class TerminatedEvent(BaseModel):
    """The process terminated. Always the last event of a spawn."""

    model_config = _EVENT_CONFIG

    kind: Literal["terminated"] = "terminated"
    payload: TerminatedPayload


CommandEvent = Annotated[
    Union[StdoutEvent, StderrEvent, ErrorEvent, TerminatedEvent],
    Field(discriminator="kind"),
]

COMMAND_EVENT_ADAPTER: TypeAdapter[CommandEvent] = TypeAdapter(CommandEvent)


@dataclass(frozen=True)
class ExitStatus:
    """Result of a process after it has terminated.

    Attributes:
        code: Exit code of the process, if any
    """

    code: int | None = None

    def success(self) -> bool:
        """True only for a zero exit code.

        Signal termination (no code) is never a success.
        """
        return self.code == 0


@dataclass
class Output:
    """Collected output of a finished process.

    Attributes:
        status: Exit status of the process
        stdout: Every stdout record, each followed by a single newline
        stderr: Every stderr record, each followed by a single newline
        errors: Messages of error events dropped during collection
    """

    status: ExitStatus
    stdout: bytes = b""
    stderr: bytes = b""
    errors: list[str] = field(default_factory=list)

    @property
    def had_errors(self) -> bool:
        """Whether any error event was seen while collecting."""
        return bool(self.errors)
