"""
Pytest configuration and shared fixtures for the getframe test suite.

Two kinds of doubles are used:
- FakeRunner: stands in for ProcessRunner; records calls and returns
  canned ProcessOutcome values (unit tests)
- fake tool scripts: small Python programs made executable and run by the
  real ProcessRunner in place of ffmpeg/ffprobe (POSIX only)
"""

import asyncio
import stat
import sys
import textwrap
import time
from pathlib import Path
from typing import Callable, List, Optional

import psutil
import pytest

from getframe.config import PipelineConfig
from getframe.execution.process import ProcessOutcome


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "posix: needs executable fake tool scripts (skipped on Windows)"
    )


def pytest_collection_modifyitems(config, items):
    if sys.platform != "win32":
        return
    skip_posix = pytest.mark.skip(reason="fake tool scripts need a POSIX shebang")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip_posix)


class FakeRunner:
    """
    ProcessRunner double.

    handler(arguments) returns the ProcessOutcome (or a coroutine producing
    one); without a handler every call returns `outcome`. stdout of the
    outcome is fed to on_stdout_line line by line.
    """

    def __init__(
        self,
        outcome: Optional[ProcessOutcome] = None,
        handler: Optional[Callable] = None,
    ):
        self.outcome = outcome or ProcessOutcome(exit_code=0)
        self.handler = handler
        self.calls: List[tuple] = []

    async def run(self, executable, arguments, cancel_token=None, on_stdout_line=None):
        arguments = list(arguments)
        self.calls.append((executable, arguments))

        if self.handler is not None:
            outcome = self.handler(arguments)
            if asyncio.iscoroutine(outcome):
                outcome = await outcome
        else:
            outcome = self.outcome

        if on_stdout_line is not None:
            for line in outcome.stdout.splitlines():
                on_stdout_line(line)
        return outcome

    @property
    def last_arguments(self) -> List[str]:
        return self.calls[-1][1]


@pytest.fixture
def temp_dir(tmp_path):
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def config(temp_dir):
    """Pipeline config with a private temp directory and a fast heartbeat."""
    return PipelineConfig(
        temp_dir=str(temp_dir),
        heartbeat_interval=0.01,
        kill_wait_timeout=5.0,
    )


@pytest.fixture
def fake_tool_file(tmp_path):
    """Existing (but not runnable) stand-in for an ffmpeg executable."""
    path = tmp_path / "bin" / "ffmpeg"
    path.parent.mkdir(exist_ok=True)
    path.write_text("")
    return path


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "media" / "clip.mp4"
    path.parent.mkdir()
    path.write_bytes(b"\x00" * 2048)
    return path


@pytest.fixture
def make_tool(tmp_path):
    """
    Factory writing an executable Python script that acts as a tool.

    Usage:
        ffmpeg = make_tool("ffmpeg", '''
            import sys
            open(sys.argv[-1], "wb").write(b"png")
        ''')
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


def leftover_files(directory, pattern: str = "*") -> List[str]:
    return sorted(p.name for p in Path(directory).glob(pattern))


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)



def process_gone(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


def wait_gone(pid: int, timeout: float = 5.0) -> bool:
    """Poll until the process has exited (or is a zombie)."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if process_gone(pid):
            return True
        time.sleep(0.05)
    return process_gone(pid)


async def wait_for_file(path: Path, attempts: int = 1000) -> None:
    for _ in range(attempts):
        if path.exists():
            return
        await asyncio.sleep(0.01)
