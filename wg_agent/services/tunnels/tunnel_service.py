"""
WireGuard Tunnel Service

Reads the live tunnel state through the process executor and hands the
output to the status parser. Two read modes are offered: a cheap one for
the heartbeat path and a detailed one for status queries.
"""

import shutil
from typing import Dict, Optional

from rich.markup import escape

from wg_agent.core.config import settings
from wg_agent.core.exceptions import ExecError
from wg_agent.core.logging import wg_logger
from wg_agent.services.process_executor import ProcessExecutor, process_executor
from .schemas import TunnelSnapshot
from .status_parser import count_peers, is_link_up, parse_wg_show


class TunnelStatusService:
    """
    Produces ``TunnelSnapshot`` objects for one WireGuard interface.

    Never raises on tool failure: a failed ``wg show`` gives a ``down``
    snapshot with zero peers and the error text attached.
    """

    def __init__(
        self,
        executor: Optional[ProcessExecutor] = None,
        interface: Optional[str] = None,
    ):
        self.executor = executor or process_executor
        self.interface = interface or settings.WG_INTERFACE

    async def get_status_simple(self) -> TunnelSnapshot:
        """Interface state and peer count only (heartbeat path)."""
        if settings.is_windows:
            return TunnelSnapshot.down(self.interface, "WireGuard commands not available on Windows")

        try:
            stdout = await self.executor.run(["wg", "show", self.interface])
        except ExecError as e:
            wg_logger.debug(f"wg show failed: {escape(str(e))}")
            return TunnelSnapshot.down(self.interface, str(e))

        return TunnelSnapshot(
            interface=self.interface,
            interface_up=await self._is_interface_up(),
            peer_count=count_peers(stdout),
            raw_text=stdout,
        )

    async def get_status_detailed(self) -> TunnelSnapshot:
        """Full snapshot with per-peer detail (status queries)."""
        if settings.is_windows:
            return TunnelSnapshot.down(self.interface, "WireGuard commands not available on Windows")

        try:
            stdout = await self.executor.run(["wg", "show", self.interface])
        except ExecError as e:
            wg_logger.debug(f"wg show failed: {escape(str(e))}")
            return TunnelSnapshot.down(self.interface, str(e))

        parsed = parse_wg_show(stdout)
        return TunnelSnapshot(
            interface=self.interface,
            interface_up=await self._is_interface_up(),
            peer_count=len(parsed.peers),
            listening_port=parsed.listening_port,
            peers=parsed.peers,
            raw_text=stdout,
        )

    async def _is_interface_up(self) -> bool:
        try:
            link_status = await self.executor.run(["ip", "link", "show", self.interface])
        except ExecError as e:
            wg_logger.debug(f"ip link show failed: {escape(str(e))}")
            return False
        return is_link_up(link_status, self.interface)

    def check_installation(self) -> Dict[str, object]:
        """Report whether the wg binary is available on this host."""
        if settings.is_windows:
            return {
                "installed": False,
                "message": "Windows platform - WireGuard commands not available",
            }
        if shutil.which("wg"):
            return {"installed": True, "message": "WireGuard is installed"}
        return {
            "installed": False,
            "message": (
                "WireGuard (wg) command not found. Please install WireGuard: "
                "sudo apt install wireguard (Ubuntu/Debian) or "
                "sudo yum install wireguard-tools (CentOS/RHEL)"
            ),
        }
