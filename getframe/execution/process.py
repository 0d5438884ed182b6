"""
Child process execution for ffprobe and ffmpeg.

Design rules:
- One child process per invocation, no shared state between invocations
- Arguments passed as a list, never through a shell
- stdout + stderr always redirected and captured; stdin closed
- No console window on Windows
- Cancellation kills the process AND its descendants; on POSIX the child
  leads its own session, so the whole process group is killed even after
  the root has exited
- A failed kill is reported in the outcome, never hidden
- Non-zero exit code is returned as-is; no retries
"""

import asyncio
import logging
import os
import signal
import subprocess
import sys
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import psutil
from pydantic import BaseModel, ConfigDict

from ..config import KILL_WAIT_TIMEOUT_SECONDS
from .cancellation import CancellationToken
from .commands import format_command

logger = logging.getLogger(__name__)


# Longest line accepted from a child stream (bytes)
STREAM_LINE_LIMIT = 1024 * 1024

LineCallback = Callable[[str], Union[None, Awaitable[None]]]


class ProcessOutcome(BaseModel):
    """
    Result of one child process invocation.

    Owned by the runner for the duration of one call; callers translate it
    into a higher-level result or error.
    """

    model_config = ConfigDict(extra="forbid")

    exit_code: Optional[int] = None
    """Process exit code (None if the process never reported one)."""

    stdout: str = ""
    """Captured standard output."""

    stderr: str = ""
    """Captured standard error."""

    was_cancelled: bool = False
    """True if the caller cancelled and the process was killed."""

    kill_error: Optional[str] = None
    """Why killing the process tree failed, if it did."""

    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.was_cancelled and self.exit_code == 0

    def cancellation_message(self) -> str:
        """Human-readable cancellation text including any kill failure."""
        if self.kill_error:
            return f"Operation was cancelled, but failed to stop the process: {self.kill_error}"
        return "Operation was cancelled."


def kill_process_tree(pid: int) -> Optional[str]:
    """
    Kill a process and every process it spawned.

    Children are collected before the parent is killed so that orphaned
    grandchildren cannot escape by being re-parented.

    Args:
        pid: Root process id

    Returns:
        None on success (or if the process was already gone), otherwise a
        description of the processes that could not be killed
    """
    try:
        root = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return None

    failures: List[str] = []

    try:
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []
    except psutil.Error as e:
        failures.append(f"could not list children of PID {pid}: {e}")
        children = []

    for proc in [*children, root]:
        try:
            logger.info(f"[Process] Killing PID {proc.pid}")
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.Error as e:
            failures.append(f"PID {proc.pid}: {e}")

    if failures:
        message = "; ".join(failures)
        logger.error(f"[Process] Failed to kill process tree of PID {pid}: {message}")
        return message

    return None


def kill_process_group(pgid: int) -> Optional[str]:
    """
    Kill every process left in a POSIX process group.

    Reaches descendants that outlived the group leader, which a tree walk
    from the leader can no longer find.

    Returns:
        None on success (or if the group is already empty), otherwise the error
    """
    try:
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        return None
    except OSError as e:
        message = f"process group {pgid}: {e}"
        logger.error(f"[Process] Failed to kill {message}")
        return message
    logger.info(f"[Process] Killed process group {pgid}")
    return None


def _join_errors(*errors: Optional[str]) -> Optional[str]:
    present = [e for e in errors if e]
    return "; ".join(present) if present else None


def _uses_process_groups() -> bool:
    return sys.platform != "win32"


def _platform_options() -> dict:
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}


def _close_transport(process: asyncio.subprocess.Process) -> None:
    # asyncio exposes no public close for a subprocess whose pipes are still open
    transport = getattr(process, "_transport", None)
    if transport is not None:
        transport.close()


async def _read_all(stream: asyncio.StreamReader) -> str:
    data = await stream.read()
    return data.decode("utf-8", errors="replace")


async def _read_lines(stream: asyncio.StreamReader, on_line: LineCallback) -> str:
    captured: List[str] = []
    while True:
        raw = await stream.readline()
        if not raw:
            break
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        captured.append(line)
        result = on_line(line)
        if asyncio.iscoroutine(result):
            await result
    return "\n".join(captured) + ("\n" if captured else "")


class ProcessRunner:
    """
    Launches a tool and waits for it, honoring a cancellation token.

    Usage:
        runner = ProcessRunner()
        outcome = await runner.run("/usr/bin/ffprobe", ["-version"])
        if outcome.succeeded:
            print(outcome.stdout)
    """

    def __init__(self, kill_wait_timeout: float = KILL_WAIT_TIMEOUT_SECONDS):
        """
        Args:
            kill_wait_timeout: Seconds to wait for a killed process to exit
        """
        self.kill_wait_timeout = kill_wait_timeout

    async def run(
        self,
        executable: str,
        arguments: Sequence[str],
        cancel_token: Optional[CancellationToken] = None,
        on_stdout_line: Optional[LineCallback] = None,
    ) -> ProcessOutcome:
        """
        Run a tool to completion or cancellation.

        Args:
            executable: Path to the executable
            arguments: Argument list (no shell interpretation)
            cancel_token: Optional token; firing it kills the process tree
            on_stdout_line: If given, stdout is delivered line by line while
                the process runs (it is still captured in full)

        Returns:
            ProcessOutcome with exit code, captured output and cancel state

        Raises:
            OSError: If the executable cannot be started
        """
        cmd = [executable, *arguments]

        if cancel_token is not None and cancel_token.cancelled:
            logger.info(f"[Process] Cancelled before start: {format_command(cmd)}")
            return ProcessOutcome(was_cancelled=True)

        logger.info(f"[Process] Executing: {format_command(cmd)}")

        started = time.monotonic()
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LINE_LIMIT,
            **_platform_options(),
        )
        logger.info(f"[Process] Started PID {process.pid}")

        if on_stdout_line is not None:
            stdout_task = asyncio.ensure_future(_read_lines(process.stdout, on_stdout_line))
        else:
            stdout_task = asyncio.ensure_future(_read_all(process.stdout))
        stderr_task = asyncio.ensure_future(_read_all(process.stderr))
        exit_task = asyncio.ensure_future(process.wait())
        cancel_task = asyncio.ensure_future(cancel_token.wait()) if cancel_token else None

        killed = False
        try:
            # A descendant can keep the pipes open after the root has exited
            running = {exit_task, stdout_task, stderr_task}
            waiting = set(running)
            if cancel_task is not None:
                waiting.add(cancel_task)

            cancelled = False
            while running:
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                if stdout_task in done and stdout_task.exception() is not None:
                    # A line callback failed; the finally block kills the process
                    raise stdout_task.exception()
                running -= done
                waiting -= done
                if cancel_task is not None and cancel_task in done and running:
                    cancelled = True
                    break

            if cancelled:
                logger.info(f"[Process] Cancellation requested for PID {process.pid}")
                killed = True
                kill_error = await self._terminate(process)
                stdout, stderr, held_open = await self._drain(stdout_task, stderr_task)
                if held_open:
                    message = (
                        f"a descendant of PID {process.pid} still holds its output open "
                        f"{self.kill_wait_timeout}s after kill"
                    )
                    logger.error(f"[Process] {message}")
                    kill_error = _join_errors(kill_error, message)
                    _close_transport(process)
                return ProcessOutcome(
                    exit_code=process.returncode,
                    stdout=stdout,
                    stderr=stderr,
                    was_cancelled=True,
                    kill_error=kill_error,
                    duration_seconds=time.monotonic() - started,
                )

            stdout = stdout_task.result()
            stderr = stderr_task.result()
            exit_code = exit_task.result()
            logger.info(f"[Process] PID {process.pid} exited with code {exit_code}")

            return ProcessOutcome(
                exit_code=exit_code,
                stdout=stdout,
                stderr=stderr,
                duration_seconds=time.monotonic() - started,
            )

        finally:
            if not killed and (process.returncode is None or not exit_task.done()):
                # Caller's task was cancelled or a callback raised
                await self._terminate(process)
            for task in (stdout_task, stderr_task, exit_task, cancel_task):
                if task is not None and not task.done():
                    task.cancel()
            await asyncio.gather(
                *(t for t in (stdout_task, stderr_task, exit_task, cancel_task) if t is not None),
                return_exceptions=True,
            )

    async def _terminate(self, process: asyncio.subprocess.Process) -> Optional[str]:
        """Kill the process tree (and its process group) and wait for the root to exit."""
        kill_error = kill_process_tree(process.pid)
        if _uses_process_groups():
            kill_error = _join_errors(kill_error, kill_process_group(process.pid))
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_wait_timeout)
        except asyncio.TimeoutError:
            if process.returncode is None:
                message = f"PID {process.pid} did not exit within {self.kill_wait_timeout}s after kill"
                logger.error(f"[Process] {message}")
                kill_error = _join_errors(kill_error, message)
        return kill_error

    async def _drain(self, stdout_task: asyncio.Future, stderr_task: asyncio.Future):
        """
        Collect whatever output the killed process produced.

        Returns:
            (stdout, stderr, held_open); held_open is True when a pipe was
            still open after the kill wait timeout
        """
        tasks = (stdout_task, stderr_task)
        await asyncio.wait(tasks, timeout=self.kill_wait_timeout)
        captured = []
        for task in tasks:
            if task.done() and not task.cancelled() and task.exception() is None:
                captured.append(task.result())
            else:
                captured.append("")
        held_open = not all(task.done() for task in tasks)
        return captured[0], captured[1], held_open
