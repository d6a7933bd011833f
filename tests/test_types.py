"""Event and result type tests."""

from __future__ import annotations

import pydantic
import pytest

from procstream.types import (
    COMMAND_EVENT_ADAPTER,
    ErrorEvent,
    ExitStatus,
    Output,
    StderrEvent,
    StdoutEvent,
    TerminatedEvent,
    TerminatedPayload,
)


class TestExitStatus:
    """success() is true only for an exact zero code."""

    @pytest.mark.parametrize(
        "code,expected",
        [(0, True), (1, False), (-1, False), (255, False), (None, False)],
    )
    def test_success(self, code, expected):
        assert ExitStatus(code=code).success() is expected

    def test_default_has_no_code(self):
        assert ExitStatus().code is None


class TestTerminatedPayload:
    """Test returncode mapping."""

    def test_normal_exit(self):
        assert TerminatedPayload.from_returncode(3) == TerminatedPayload(code=3, signal=None)

    def test_signal_exit_on_posix(self):
        payload = TerminatedPayload.from_returncode(-9, posix=True)
        assert payload.code is None
        assert payload.signal == 9

    def test_negative_code_on_windows_is_a_code(self):
        payload = TerminatedPayload.from_returncode(-1, posix=False)
        assert payload.code == -1
        assert payload.signal is None


class TestCommandEvent:
    """Test the discriminated union."""

    def test_kinds(self):
        assert StdoutEvent(data=b"x").kind == "stdout"
        assert StderrEvent(data=b"x").kind == "stderr"
        assert ErrorEvent(message="x").kind == "error"
        assert TerminatedEvent(payload=TerminatedPayload()).kind == "terminated"

    def test_events_are_frozen(self):
        event = StdoutEvent(data=b"x")
        with pytest.raises(pydantic.ValidationError):
            event.data = b"y"  # type: ignore[misc]

    def test_stdout_and_stderr_are_distinct(self):
        assert StdoutEvent(data=b"x") != StderrEvent(data=b"x")

    def test_validate_python_dispatches_on_kind(self):
        event = COMMAND_EVENT_ADAPTER.validate_python(
            {"kind": "terminated", "payload": {"code": 1, "signal": None}}
        )
        assert isinstance(event, TerminatedEvent)
        assert event.payload.code == 1

    def test_json_round_trip_keeps_raw_bytes(self):
        event = StdoutEvent(data=b"\xff\x00raw")
        restored = COMMAND_EVENT_ADAPTER.validate_json(COMMAND_EVENT_ADAPTER.dump_json(event))
        assert restored == event

    def test_unknown_kind_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            COMMAND_EVENT_ADAPTER.validate_python({"kind": "stdin", "data": b""})


class TestOutput:
    """Test Output defaults."""

    def test_defaults(self):
        output = Output(status=ExitStatus(code=0))
        assert output.stdout == b""
        assert output.stderr == b""
        assert output.errors == []
        assert output.had_errors is False

    def test_had_errors(self):
        output = Output(status=ExitStatus(), errors=["broken pipe"])
        assert output.had_errors is True
