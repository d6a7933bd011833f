"""Command line entry tests."""

from __future__ import annotations

import io
import json
import sys

import pytest

from procstream import __version__
from procstream.cli import build_parser, event_to_dict, main
from procstream.types import (
    ErrorEvent,
    StderrEvent,
    StdoutEvent,
    TerminatedEvent,
    TerminatedPayload,
)


class TestEventToDict:
    """Test event conversion."""

    def test_stdout(self):
        assert event_to_dict(StdoutEvent(data=b"hello")) == {"kind": "stdout", "text": "hello"}

    def test_stderr_invalid_utf8_is_replaced(self):
        result = event_to_dict(StderrEvent(data=b"bad \xff"))
        assert result == {"kind": "stderr", "text": "bad �"}

    def test_error(self):
        assert event_to_dict(ErrorEvent(message="broken")) == {"kind": "error", "message": "broken"}

    def test_terminated(self):
        event = TerminatedEvent(payload=TerminatedPayload(code=None, signal=9))
        assert event_to_dict(event) == {"kind": "terminated", "code": None, "signal": 9}


class TestParser:
    """Test argument parsing."""

    def test_program_and_args(self):
        ns = build_parser().parse_args(["--json", "prog", "-x", "--flag", "value"])
        assert ns.json is True
        assert ns.program == "prog"
        assert ns.args == ["-x", "--flag", "value"]

    def test_env_pairs(self):
        ns = build_parser().parse_args(["--env", "A=1", "--env", "B=x=y", "prog"])
        assert ns.env == [("A", "1"), ("B", "x=y")]

    def test_invalid_env_pair(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--env", "NOEQUALS", "prog"])
        assert exc_info.value.code == 2

    def test_version(self, capsys: pytest.CaptureFixture[str]):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    """Test running a child through main()."""

    @pytest.mark.timeout(30)
    def test_plain_output(self, fake_child: list[str], capfd: pytest.CaptureFixture[str]):
        code = main([
            "--no-stdin", *fake_child,
            "--stdout", "to out", "--stderr", "to err",
        ])
        captured = capfd.readouterr()

        assert code == 0
        assert "to out" in captured.out
        assert "to err" in captured.err

    @pytest.mark.timeout(30)
    def test_json_output(self, fake_child: list[str], capfd: pytest.CaptureFixture[str]):
        code = main(["--json", "--no-stdin", *fake_child, "--stdout", "hi"])
        lines = [json.loads(line) for line in capfd.readouterr().out.splitlines() if line]

        assert code == 0
        assert lines == [
            {"kind": "stdout", "text": "hi"},
            {"kind": "terminated", "code": 0, "signal": None},
        ]

    @pytest.mark.timeout(30)
    def test_exit_code_is_forwarded(self, fake_child: list[str]):
        assert main(["--no-stdin", *fake_child, "--exit-code", "3"]) == 3

    @pytest.mark.timeout(30)
    def test_env_and_cwd(self, fake_child: list[str], capfd: pytest.CaptureFixture[str], tmp_path):
        code = main([
            "--no-stdin", "--env", "PROCSTREAM_CLI_VAR=from cli", "--cwd", str(tmp_path),
            *fake_child, "--env", "PROCSTREAM_CLI_VAR",
        ])
        assert code == 0
        assert "from cli" in capfd.readouterr().out

    @pytest.mark.timeout(30)
    def test_stdin_is_forwarded(
        self, fake_child: list[str], capfd: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"piped line\n")))
        code = main([*fake_child, "--echo-stdin"])

        assert code == 0
        assert "piped line" in capfd.readouterr().out

    def test_spawn_failure(self):
        assert main(["--no-stdin", "nonexistent_command_xyz_123"]) == 1
