"""Event stream reducers.

Turns a drained event stream into the results of the high-level
operations:
- StatusCollector: keeps only the terminated exit code
- OutputCollector: also accumulates stdout/stderr records

Error events never abort collection. OutputCollector keeps their messages
in ``Output.errors`` so callers can tell a partial result apart.
"""

from __future__ import annotations

import logging

from .types import NEWLINE_BYTE, CommandEvent, ExitStatus, Output

__all__ = ["StatusCollector", "OutputCollector"]

logger = logging.getLogger(__name__)


class StatusCollector:
    """Reduce events to an ExitStatus."""

    def __init__(self) -> None:
        self._code: int | None = None

    def process_event(self, event: CommandEvent) -> None:
        if event.kind == "terminated":
            self._code = event.payload.code

    def get_result(self) -> ExitStatus:
        return ExitStatus(code=self._code)


class OutputCollector(StatusCollector):
    """Reduce events to an Output.

    Each record is followed by a single newline, whatever separator ended
    it in the original stream.
    """

    def __init__(self) -> None:
        super().__init__()
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._errors: list[str] = []

    def process_event(self, event: CommandEvent) -> None:
        if event.kind == "stdout":
            self._stdout += event.data
            self._stdout += NEWLINE_BYTE
        elif event.kind == "stderr":
            self._stderr += event.data
            self._stderr += NEWLINE_BYTE
        elif event.kind == "error":
            logger.debug(f"Dropping error event from output: {event.message}")
            self._errors.append(event.message)
        elif event.kind == "terminated":
            super().process_event(event)

    def get_result(self) -> Output:
        return Output(
            status=super().get_result(),
            stdout=bytes(self._stdout),
            stderr=bytes(self._stderr),
            errors=list(self._errors),
        )
