"""
Host resource sampling: CPU, RAM and load average as percentages.

Every public method is best-effort and returns 0 when the underlying
probe fails, so a broken metric never blocks the heartbeat.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from rich.markup import escape

from wg_agent.core.config import settings
from wg_agent.core.exceptions import ExecError
from wg_agent.core.logging import agent_logger
from wg_agent.services.process_executor import ProcessExecutor, process_executor

_TOP_IDLE_RE = re.compile(r"([\d.]+)\s*%?\s*id\b")


@dataclass
class ResourceSample:
    """Host metrics, each clamped to [0, 100]."""
    cpu_percent: float = 0.0
    ram_percent: float = 0.0
    load_percent: float = 0.0


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def parse_loadavg(text: str) -> float:
    """First field of /proc/loadavg."""
    return float(text.split()[0])


def parse_top_idle(text: str) -> Optional[float]:
    """Idle percentage from the 'Cpu(s)' line of ``top -bn1``."""
    for line in text.splitlines():
        if "Cpu(s)" in line:
            match = _TOP_IDLE_RE.search(line)
            if match:
                return float(match.group(1))
    return None


def parse_proc_stat(text: str) -> Tuple[int, int]:
    """
    Parse the aggregate 'cpu' line of /proc/stat.

    Returns:
        Tuple of (idle, total) over user/nice/system/idle/iowait/irq/softirq
    """
    for line in text.splitlines():
        fields = line.split()
        if fields and fields[0] == "cpu":
            values = [int(v) for v in fields[1:8]]
            values += [0] * (7 - len(values))
            return values[3], sum(values)
    raise ValueError("no aggregate cpu line in /proc/stat")


def parse_free(text: str) -> float:
    """Used/total memory percentage from the 'Mem:' line of ``free``."""
    for line in text.splitlines():
        if line.startswith("Mem:"):
            fields = line.split()
            total, used = float(fields[1]), float(fields[2])
            if total <= 0:
                raise ValueError("total memory is zero")
            return used / total * 100.0
    raise ValueError("no Mem: line in free output")


class ResourceSampler:
    """Samples host metrics through the process executor."""

    def __init__(
        self,
        executor: Optional[ProcessExecutor] = None,
        cpu_sample_interval: Optional[float] = None,
    ):
        self.executor = executor or process_executor
        self.cpu_sample_interval = (
            settings.CPU_SAMPLE_INTERVAL
            if cpu_sample_interval is None else cpu_sample_interval
        )

    async def get_system_load(self) -> float:
        """1-minute load average normalised by core count."""
        if settings.is_windows:
            return 0.0
        try:
            load_1min = parse_loadavg(await self.executor.run(["cat", "/proc/loadavg"]))
            cores = int((await self.executor.run(["nproc"])).strip() or 0) or 1
            return clamp_percent(load_1min / cores * 100.0)
        except (ExecError, ValueError, IndexError) as e:
            agent_logger.debug(f"Load average unavailable: {escape(str(e))}")
            return 0.0

    async def get_cpu_usage(self) -> float:
        """Busy CPU percentage from top, falling back to /proc/stat deltas."""
        if settings.is_windows:
            return 0.0

        try:
            idle = parse_top_idle(await self.executor.run(["top", "-bn1"]))
            if idle is not None and 0.0 <= idle <= 100.0:
                return clamp_percent(100.0 - idle)
        except (ExecError, ValueError) as e:
            agent_logger.debug(
                f"top sampling failed, falling back to /proc/stat: {escape(str(e))}"
            )

        try:
            idle1, total1 = parse_proc_stat(await self.executor.run(["cat", "/proc/stat"]))
            await asyncio.sleep(self.cpu_sample_interval)
            idle2, total2 = parse_proc_stat(await self.executor.run(["cat", "/proc/stat"]))
        except (ExecError, ValueError) as e:
            agent_logger.debug(f"CPU usage unavailable: {escape(str(e))}")
            return 0.0

        total_diff = total2 - total1
        if total_diff <= 0:
            return 0.0
        return clamp_percent(100.0 * (1.0 - (idle2 - idle1) / total_diff))

    async def get_ram_usage(self) -> float:
        """Used memory as a percentage of total."""
        if settings.is_windows:
            return 0.0
        try:
            return clamp_percent(parse_free(await self.executor.run(["free"])))
        except (ExecError, ValueError, IndexError) as e:
            agent_logger.debug(f"RAM usage unavailable: {escape(str(e))}")
            return 0.0

    async def sample(self) -> ResourceSample:
        """Collect all three metrics."""
        load = await self.get_system_load()
        cpu = await self.get_cpu_usage()
        ram = await self.get_ram_usage()
        return ResourceSample(cpu_percent=cpu, ram_percent=ram, load_percent=load)
