import asyncio
import sys
import time

import psutil
import pytest

from wg_agent.core.exceptions import (
    ExecError,
    ExecTimeoutError,
    NonZeroExitError,
    SpawnError,
)
from wg_agent.services.process_executor import ProcessExecutor

# Starts a grandchild, records "<own pid> <grandchild pid>" in argv[1], then hangs
SPAWNS_CHILD = """\
import os, subprocess, sys, time
child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
with open(sys.argv[1] + ".tmp", "w") as f:
    f.write("%d %d" % (os.getpid(), child.pid))
os.replace(sys.argv[1] + ".tmp", sys.argv[1])
time.sleep(60)
"""


async def _read_pids(path, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not path.exists():
        if time.monotonic() > deadline:
            raise AssertionError("child never reported its pids")
        await asyncio.sleep(0.05)
    return [int(pid) for pid in path.read_text().split()]


async def _assert_gone(pid, timeout=5.0):
    """Wait for a process to disappear (an unreaped zombie counts as gone)."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            if psutil.Process(pid).status() == psutil.STATUS_ZOMBIE:
                return
        except psutil.NoSuchProcess:
            return
        if time.monotonic() > deadline:
            raise AssertionError(f"process {pid} is still running")
        await asyncio.sleep(0.05)


@pytest.mark.asyncio
async def test_returns_stdout():
    executor = ProcessExecutor(default_timeout=10)
    out = await executor.run([sys.executable, "-c", "print('interface: wg0')"])
    assert out.strip() == "interface: wg0"


@pytest.mark.asyncio
async def test_non_zero_exit():
    executor = ProcessExecutor(default_timeout=10)
    script = "import sys; sys.stderr.write('No such device'); sys.exit(3)"

    with pytest.raises(NonZeroExitError) as exc_info:
        await executor.run([sys.executable, "-c", script])

    assert exc_info.value.code == 3
    assert "No such device" in exc_info.value.stderr
    assert isinstance(exc_info.value, ExecError)


@pytest.mark.asyncio
async def test_timeout_kills_process_tree(tmp_path):
    executor = ProcessExecutor(default_timeout=10)
    pid_file = tmp_path / "pids"

    started = time.monotonic()
    with pytest.raises(ExecTimeoutError) as exc_info:
        await executor.run([sys.executable, "-c", SPAWNS_CHILD, str(pid_file)], timeout=3)

    assert time.monotonic() - started < 10
    assert exc_info.value.timeout == 3

    pid, grandchild = await _read_pids(pid_file)
    await _assert_gone(pid)
    await _assert_gone(grandchild)


@pytest.mark.asyncio
async def test_cancellation_kills_process_tree(tmp_path):
    executor = ProcessExecutor(default_timeout=30)
    pid_file = tmp_path / "pids"

    task = asyncio.create_task(
        executor.run([sys.executable, "-c", SPAWNS_CHILD, str(pid_file)])
    )
    pid, grandchild = await _read_pids(pid_file)
    assert psutil.pid_exists(pid)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await _assert_gone(pid)
    await _assert_gone(grandchild)


@pytest.mark.asyncio
async def test_missing_binary():
    executor = ProcessExecutor(default_timeout=10)

    with pytest.raises(SpawnError) as exc_info:
        await executor.run(["definitely-not-a-real-binary-wg"])

    assert exc_info.value.argv == ["definitely-not-a-real-binary-wg"]
