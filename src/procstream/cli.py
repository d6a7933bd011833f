"""procstream command line entry.

Runs one program and prints its event stream:
- plain mode: stdout records to stdout, stderr records to stderr
- --json mode: one JSON object per event on stdout

Exit code mirrors the child (128 + signal for signal deaths, 1 when the
program could not be spawned or no exit status was reported).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from typing import Any, Sequence

from . import __version__
from .config import Config, get_config
from .errors import ProcStreamError, SpawnError
from .process import Command, CommandChild
from .types import CommandEvent

__all__ = ["main", "configure_logging", "event_to_dict", "build_parser"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(config: Config) -> None:
    """Configure log output.

    Debug mode logs to the temp file from the config, otherwise to stderr.
    Third-party loggers stay at WARNING; only ``procstream`` is raised.
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("procstream").setLevel(log_level)


def event_to_dict(event: CommandEvent) -> dict[str, Any]:
    """Convert an event to a JSON-friendly dict with decoded text."""
    result: dict[str, Any] = {"kind": event.kind}
    if event.kind in ("stdout", "stderr"):
        result["text"] = event.data.decode("utf-8", errors="replace")
    elif event.kind == "error":
        result["message"] = event.message
    elif event.kind == "terminated":
        result["code"] = event.payload.code
        result["signal"] = event.payload.signal
    return result


def _env_pair(value: str) -> tuple[str, str]:
    key, sep, env_value = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"invalid value {value!r}, expected KEY=VALUE")
    return key, env_value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procstream",
        description="Run a program and stream its output as events",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="Print events as JSON lines")
    parser.add_argument("--cwd", default=None, help="Working directory of the program")
    parser.add_argument(
        "--env", action="append", default=[], type=_env_pair, metavar="KEY=VALUE",
        help="Extra environment variable (repeatable)",
    )
    parser.add_argument("--env-clear", action="store_true", help="Start from an empty environment")
    parser.add_argument("--sidecar", action="store_true", help="Resolve the program next to the executable")
    parser.add_argument("--no-stdin", action="store_true", help="Close the program's stdin immediately")
    parser.add_argument("program", help="Program to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Program arguments")
    return parser


def _build_command(ns: argparse.Namespace) -> Command:
    command = Command.new_sidecar(ns.program) if ns.sidecar else Command(ns.program)
    args = list(ns.args)
    if args and args[0] == "--":
        args = args[1:]
    command.args(args)
    if ns.env_clear:
        command.env_clear()
    if ns.env:
        command.envs(dict(ns.env))
    if ns.cwd:
        command.current_dir(ns.cwd)
    return command


def _forward_stdin(child: CommandChild) -> None:
    """Copy this process's stdin into the child, then close it."""
    if sys.stdin is None:
        child.close_stdin()
        return
    try:
        for chunk in iter(lambda: sys.stdin.buffer.read1(65536), b""):
            child.write(chunk)
    except (ProcStreamError, OSError) as e:
        logger.debug(f"Stopped forwarding stdin: {e}")
    finally:
        child.close_stdin()


def _print_event(event: CommandEvent, as_json: bool) -> None:
    if as_json:
        sys.stdout.write(json.dumps(event_to_dict(event), ensure_ascii=False) + "\n")
        sys.stdout.flush()
        return
    if event.kind == "stdout":
        sys.stdout.buffer.write(event.data + b"\n")
        sys.stdout.buffer.flush()
    elif event.kind == "stderr":
        sys.stderr.buffer.write(event.data + b"\n")
        sys.stderr.buffer.flush()
    elif event.kind == "error":
        logger.error(f"Process error: {event.message}")


def run(ns: argparse.Namespace, config: Config) -> int:
    """Run the parsed command and return the exit code to use."""
    try:
        command = _build_command(ns)
        rx, child = command.spawn()
    except SpawnError as e:
        logger.error(str(e))
        return 1

    if ns.no_stdin:
        child.close_stdin()
    else:
        threading.Thread(target=_forward_stdin, args=(child,), daemon=True).start()

    exit_code = 1
    try:
        # Plain recv() keeps rx open on KeyboardInterrupt for the kill path
        while True:
            event = rx.recv()
            if event is None:
                break
            _print_event(event, ns.json)
            if event.kind == "terminated":
                if event.payload.signal is not None:
                    exit_code = 128 + event.payload.signal
                elif event.payload.code is not None:
                    exit_code = event.payload.code
    except KeyboardInterrupt:
        if not config.kill_on_exit:
            logger.info(f"Interrupted, leaving pid={child.pid} running")
            rx.close()
            return 130
        logger.info(f"Interrupted, killing pid={child.pid}")
        child.kill()
        for event in rx:
            _print_event(event, ns.json)
        return 130

    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    config = get_config()
    configure_logging(config)
    ns = build_parser().parse_args(argv)
    return run(ns, config)
