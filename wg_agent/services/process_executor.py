"""
Process Executor

Runs external diagnostic and mutation commands (wg, ip, top, free, ...)
with a bounded wait and returns their stdout.
"""

import asyncio
from typing import Optional, Sequence

import psutil

from wg_agent.core.config import settings
from wg_agent.core.exceptions import (
    ExecTimeoutError,
    NonZeroExitError,
    SpawnError,
)
from wg_agent.core.logging import log_command, wg_logger


class ProcessExecutor:
    """
    Thin async wrapper around ``asyncio.create_subprocess_exec``.

    Commands are given as argument vectors and never go through a shell.
    Failures are raised as ``ExecError`` subclasses:

    - ``ExecTimeoutError`` when the command outlives its timeout
      (the process tree is terminated first)
    - ``NonZeroExitError`` for a non-zero exit status
    - ``SpawnError`` when the binary cannot be started
    """

    def __init__(self, default_timeout: Optional[float] = None):
        self.default_timeout = default_timeout or settings.COMMAND_TIMEOUT

    async def run(self, argv: Sequence[str], timeout: Optional[float] = None) -> str:
        """
        Run a command and return its decoded stdout.

        Args:
            argv: Program and arguments
            timeout: Seconds to wait before killing the process

        Returns:
            Captured stdout
        """
        argv = [str(arg) for arg in argv]
        timeout = timeout or self.default_timeout
        log_command(wg_logger, argv)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise SpawnError(argv, e.strerror or str(e)) from e
        except OSError as e:
            raise SpawnError(argv, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise ExecTimeoutError(argv, timeout)
        except asyncio.CancelledError:
            await asyncio.shield(self._terminate(process))
            raise

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")

        if process.returncode != 0:
            raise NonZeroExitError(argv, process.returncode, err, out)

        return out

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill a timed-out process together with any children it spawned."""
        try:
            parent = psutil.Process(process.pid)
            for child in parent.children(recursive=True):
                try:
                    child.kill()
                except psutil.NoSuchProcess:
                    pass
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass

        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass

        try:
            await asyncio.wait_for(process.wait(), timeout=2)
        except asyncio.TimeoutError:
            wg_logger.warning(f"Process {process.pid} did not exit after kill")


# Global executor instance
process_executor = ProcessExecutor()
