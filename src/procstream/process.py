"""Process spawning with event streaming.

procstream process module v0.1.0

This module provides:
- Command: builder for a child process (program, args, env, cwd)
- Command.spawn(): starts the child with stdin/stdout/stderr piped
- An event stream of stdout/stderr records and one terminated event
- CommandChild: stdin writes, kill, pid of the running child

Key design points:
- One reader thread per output pipe, one supervisor thread waiting for exit
- The supervisor reports termination only after both readers drained
  their pipes (CompletionGuard)
- A single-slot channel hands events over, so a slow consumer throttles
  the readers and, through the OS pipe buffer, the child itself
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import IO, Any

from .channel import EventReceiver, EventSender, channel
from .collector import OutputCollector, StatusCollector
from .config import get_config
from .errors import (
    ChildConsumedError,
    CommandConsumedError,
    CurrentExeHasNoParentError,
    ProcessIOError,
    SpawnError,
)
from .guard import CompletionGuard
from .io import LineSplitter, read_line
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
    "Command",
    "CommandChild",
    "SharedChild",
    "relative_command_path",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Suppresses the console window of console programs on Windows
CREATE_NO_WINDOW = 0x08000000


class SharedChild:
    """OS process handle shared by the supervisor thread and CommandChild.

    The supervisor blocks in ``wait()`` while the caller may ``kill()``
    from another thread; Popen serializes reaping internally, so both
    sides use it directly.
    """

    def __init__(self, popen: subprocess.Popen[bytes]) -> None:
        self._popen = popen

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def returncode(self) -> int | None:
        """Raw returncode once the child was reaped, else None."""
        return self._popen.returncode

    def wait(self) -> int:
        """Block until the child exits and return its raw returncode."""
        return self._popen.wait()

    def kill(self) -> None:
        """Send the kill signal (SIGKILL, TerminateProcess on Windows).

        Killing a child that already exited is a no-op.
        """
        try:
            self._popen.kill()
        except ProcessLookupError:
            logger.debug(f"Child already exited pid={self.pid}")


class CommandChild:
    """Handle to a spawned child.

    Owns the write end of the child's stdin; shares the OS handle with the
    supervisor thread. ``kill()`` consumes the handle.
    """

    def __init__(self, child: SharedChild, stdin: IO[bytes] | None) -> None:
        self._child = child
        self._stdin = stdin
        self._killed = False

    @property
    def pid(self) -> int:
        """OS process id, valid for the life of the handle."""
        return self._child.pid

    def write(self, data: bytes) -> None:
        """Write all of ``data`` to the child's stdin.

        Args:
            data: Bytes to write

        Raises:
            ProcessIOError: If stdin is closed or the pipe is broken
        """
        stdin = self._stdin
        if stdin is None:
            raise ProcessIOError(f"stdin of pid {self.pid} is closed")
        try:
            stdin.write(data)
            stdin.flush()
        except (OSError, ValueError) as e:
            raise ProcessIOError(f"failed to write to stdin of pid {self.pid}: {e}") from e

    def close_stdin(self) -> None:
        """Close stdin so the child reads end-of-file."""
        stdin, self._stdin = self._stdin, None
        if stdin is None:
            return
        try:
            stdin.close()
        except OSError as e:
            # Unflushed bytes of a broken pipe; the child is gone anyway
            logger.debug(f"Error closing stdin of pid={self.pid}: {e}")

    def kill(self) -> None:
        """Send a kill signal to the child and consume the handle.

        Does not wait: the terminated event still arrives through the
        event stream.

        Raises:
            ChildConsumedError: If the handle was already killed
            ProcessIOError: If the signal could not be sent
        """
        if self._killed:
            raise ChildConsumedError(f"child pid {self.pid} was already killed")
        self._killed = True
        try:
            self._child.kill()
            logger.debug(f"Sent kill to pid={self.pid}")
        except OSError as e:
            raise ProcessIOError(f"failed to kill pid {self.pid}: {e}") from e
        finally:
            self.close_stdin()

    def __repr__(self) -> str:
        state = "killed" if self._killed else "alive"
        return f"CommandChild(pid={self.pid}, {state})"


def relative_command_path(command: str, exe_dir: Path | None = None) -> str:
    """Resolve a sidecar program next to the running executable.

    Args:
        command: Sidecar program name
        exe_dir: Directory to use instead of the executable's parent

    Returns:
        Absolute program path (``.exe`` appended on Windows)

    Raises:
        CurrentExeHasNoParentError: If no parent directory can be resolved
    """
    if exe_dir is None:
        if not sys.executable:
            raise CurrentExeHasNoParentError(command)
        exe = Path(sys.executable).resolve()
        if exe.parent == exe:
            raise CurrentExeHasNoParentError(command)
        exe_dir = exe.parent
    if IS_WINDOWS:
        return f"{exe_dir}\\{command}.exe"
    return f"{exe_dir}/{command}"


def _stdout_event(record: bytes) -> CommandEvent:
    return StdoutEvent(data=record)


def _stderr_event(record: bytes) -> CommandEvent:
    return StderrEvent(data=record)


def _spawn_pipe_reader(
    tx: EventSender,
    guard: CompletionGuard,
    pipe: IO[bytes],
    wrapper: Callable[[bytes], CommandEvent],
    name: str,
) -> threading.Thread:
    """Start a thread forwarding the records of ``pipe`` into ``tx``.

    The caller must already hold a shared guard slot for this reader; the
    thread releases it once the pipe is drained.
    """

    def run() -> None:
        try:
            splitter = LineSplitter(pipe)
            buf = bytearray()
            while True:
                buf.clear()
                try:
                    consumed = read_line(splitter, buf)
                except (OSError, ValueError) as e:
                    logger.debug(f"{name} read failed: {e}")
                    tx.send(ErrorEvent(message=str(e)))
                    break
                if consumed == 0:
                    break
                # A closed receiver discards the event; keep draining so
                # the child never blocks on a full pipe
                tx.send(wrapper(bytes(buf)))
        except Exception as e:
            logger.warning(f"{name} reader failed: {e}", exc_info=True)
            tx.send(ErrorEvent(message=f"{name} reader failed: {e}"))
        finally:
            try:
                pipe.close()
            except OSError as e:
                logger.debug(f"Error closing {name} pipe: {e}")
            guard.release_shared()
            tx.close()
            logger.debug(f"{name} reader finished")

    thread = threading.Thread(target=run, name=f"procstream-{name}", daemon=True)
    thread.start()
    return thread


def _spawn_supervisor(
    tx: EventSender,
    guard: CompletionGuard,
    child: SharedChild,
    registry: ChildRegistry | None,
) -> threading.Thread:
    """Start the thread that waits for exit and sends the final event."""
    pid = child.pid

    def run() -> None:
        try:
            try:
                returncode = child.wait()
            except Exception as e:
                logger.warning(f"Waiting for pid={pid} failed: {e}")
                event: CommandEvent = ErrorEvent(message=str(e))
            else:
                payload = TerminatedPayload.from_returncode(returncode, posix=not IS_WINDOWS)
                logger.debug(
                    f"Child exited pid={pid} code={payload.code} signal={payload.signal}"
                )
                event = TerminatedEvent(payload=payload)

            # Blocks until both readers released their shared slots
            with guard.exclusive():
                tx.send(event)
        finally:
            if registry is not None:
                registry.unregister(pid)
            tx.close()

    thread = threading.Thread(target=run, name=f"procstream-wait-{pid}", daemon=True)
    thread.start()
    return thread


class Command:
    """Builder for a child process.

    Builder methods return the command itself; a command is consumed by
    ``spawn()``, ``status()`` or ``output()`` and cannot be reused.

    Example:
        rx, child = Command("cargo").args(["tauri", "dev"]).spawn()
        count = 0
        for event in rx:
            if event.kind == "stdout":
                print(event.data.decode())
                count += 1
                if count == 4:
                    child.write(b"message from Python\\n")
                    count = 0
    """

    def __init__(self, program: str | os.PathLike[str]) -> None:
        self._program = os.fspath(program)
        self._args: list[str] = []
        self._env_clear = False
        self._env: dict[str, str] = {}
        self._current_dir: Path | None = None
        self._consumed = False

    @classmethod
    def new_sidecar(cls, program: str) -> "Command":
        """Create a command for a program shipped next to the executable.

        ``PROCSTREAM_SIDECAR_DIR`` overrides the lookup directory.

        Raises:
            CurrentExeHasNoParentError: If the directory cannot be resolved
        """
        return cls(relative_command_path(program, get_config().sidecar_dir))

    # =========================================================================
    # Builder
    # =========================================================================

    def _check_not_consumed(self) -> None:
        if self._consumed:
            raise CommandConsumedError(f"command {self._program!r} was already spawned")

    def arg(self, arg: str) -> "Command":
        """Append one argument."""
        self._check_not_consumed()
        self._args.append(str(arg))
        return self

    def args(self, args: Iterable[str]) -> "Command":
        """Append arguments."""
        self._check_not_consumed()
        self._args.extend(str(arg) for arg in args)
        return self

    def env_clear(self) -> "Command":
        """Clear the entire inherited environment of the child."""
        self._check_not_consumed()
        self._env_clear = True
        return self

    def env(self, key: str, value: str) -> "Command":
        """Add or update one environment variable."""
        self._check_not_consumed()
        self._env[key] = value
        return self

    def envs(self, env: Mapping[str, str]) -> "Command":
        """Add or update multiple environment variables."""
        self._check_not_consumed()
        self._env.update(env)
        return self

    def current_dir(self, current_dir: str | os.PathLike[str]) -> "Command":
        """Set the working directory of the child."""
        self._check_not_consumed()
        self._current_dir = Path(current_dir)
        return self

    @property
    def program(self) -> str:
        return self._program

    def get_args(self) -> list[str]:
        return list(self._args)

    def get_envs(self) -> dict[str, str]:
        return dict(self._env)

    def get_current_dir(self) -> Path | None:
        return self._current_dir

    @property
    def is_env_clear(self) -> bool:
        return self._env_clear

    def _build_popen_kwargs(self) -> dict[str, Any]:
        """Build subprocess.Popen kwargs.

        Returns:
            Dict of kwargs with all three standard streams piped
        """
        kwargs: dict[str, Any] = {
            "stdin": subprocess.PIPE,
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
        }

        # Environment: None inherits the parent's unchanged
        if self._env_clear or self._env:
            env = {} if self._env_clear else dict(os.environ)
            env.update(self._env)
            kwargs["env"] = env

        if self._current_dir is not None:
            kwargs["cwd"] = self._current_dir

        if IS_WINDOWS:
            kwargs["creationflags"] = CREATE_NO_WINDOW

        return kwargs

    # =========================================================================
    # Spawn
    # =========================================================================

    def spawn(
        self, *, registry: ChildRegistry | None = None
    ) -> tuple[EventReceiver, CommandChild]:
        """Spawn the command.

        Args:
            registry: Optional registry tracking the child until it exits

        Returns:
            Tuple of (event receiver, child handle)

        Raises:
            SpawnError: If the process could not be started
            CommandConsumedError: If the command was already spawned
        """
        self._check_not_consumed()
        self._consumed = True

        argv = [self._program, *self._args]
        kwargs = self._build_popen_kwargs()
        try:
            popen = subprocess.Popen(argv, **kwargs)
        except OSError as e:
            raise SpawnError(self._program, str(e)) from e

        child = SharedChild(popen)
        logger.debug(
            f"Started subprocess pid={child.pid} "
            f"argv={self._program} cwd={self._current_dir}"
        )
        if registry is not None:
            registry.register(self._program, child)

        guard = CompletionGuard()
        tx, rx = channel(1)

        # Shared slots are taken before the threads start, so the
        # supervisor can never win the guard ahead of a reader
        guard.acquire_shared()
        _spawn_pipe_reader(tx.clone(), guard, popen.stdout, _stdout_event, "stdout")
        guard.acquire_shared()
        _spawn_pipe_reader(tx.clone(), guard, popen.stderr, _stderr_event, "stderr")
        _spawn_supervisor(tx, guard, child, registry)

        return rx, CommandChild(child, popen.stdin)

    # =========================================================================
    # High-level operations
    # =========================================================================

    async def status(self, *, registry: ChildRegistry | None = None) -> ExitStatus:
        """Run the command to completion and return its exit status.

        Stdin is closed right away; stdout and stderr are discarded. If the
        caller is cancelled, the receiver is closed and the child keeps
        running to completion without anyone reading its output.
        """
        rx, child = self.spawn(registry=registry)
        child.close_stdin()
        collector = StatusCollector()
        with rx:
            async for event in rx:
                collector.process_event(event)
        return collector.get_result()

    async def output(self, *, registry: ChildRegistry | None = None) -> Output:
        """Run the command to completion and collect all of its output.

        Stdin is closed right away. Error events do not abort collection.
        """
        rx, child = self.spawn(registry=registry)
        child.close_stdin()
        collector = OutputCollector()
        with rx:
            async for event in rx:
                collector.process_event(event)
        return collector.get_result()

    def status_blocking(self, *, registry: ChildRegistry | None = None) -> ExitStatus:
        """Blocking variant of ``status()``."""
        rx, child = self.spawn(registry=registry)
        child.close_stdin()
        collector = StatusCollector()
        with rx:
            for event in rx:
                collector.process_event(event)
        return collector.get_result()

    def output_blocking(self, *, registry: ChildRegistry | None = None) -> Output:
        """Blocking variant of ``output()``."""
        rx, child = self.spawn(registry=registry)
        child.close_stdin()
        collector = OutputCollector()
        with rx:
            for event in rx:
                collector.process_event(event)
        return collector.get_result()

    def __repr__(self) -> str:
        return (
            f"Command(program={self._program!r}, args={self._args!r}, "
            f"env_clear={self._env_clear}, current_dir={self._current_dir})"
        )
