"""
Peer Mutator

Adds and removes peers on the live WireGuard interface and then tries to
persist the running configuration with ``wg-quick save``.
"""

import asyncio
from typing import List, Optional

from rich.markup import escape

from wg_agent.core.config import settings
from wg_agent.core.exceptions import ExecError, MutationError
from wg_agent.core.logging import short_key, wg_logger
from wg_agent.services.process_executor import ProcessExecutor, process_executor
from .enums import PeerOperation
from .schemas import MutationOutcome


class PeerMutator:
    """
    Applies peer-set changes through the ``wg`` tool.

    Mutations go through a single lock so concurrent commands never run
    overlapping ``wg set`` invocations. The save step is best-effort: its
    result is logged and returned in ``MutationOutcome.persisted`` but never
    turns a successful mutation into a failure.
    """

    def __init__(
        self,
        executor: Optional[ProcessExecutor] = None,
        interface: Optional[str] = None,
        default_allowed_ips: Optional[str] = None,
    ):
        self.executor = executor or process_executor
        self.interface = interface or settings.WG_INTERFACE
        self.default_allowed_ips = default_allowed_ips or settings.DEFAULT_ALLOWED_IPS
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the asyncio lock (lazy initialization)"""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def add_peer(
        self, public_key: str, allowed_ips: Optional[str] = None
    ) -> MutationOutcome:
        """Attach a peer with the given allowed-ips range (or the default one)."""
        allowed = allowed_ips or self.default_allowed_ips
        argv = [
            "wg", "set", self.interface,
            "peer", public_key,
            "allowed-ips", allowed,
        ]
        outcome = await self._mutate(PeerOperation.ADD, public_key, argv)
        wg_logger.info(f"✅ Peer added: {short_key(public_key)} ({escape(allowed)})")
        return outcome

    async def remove_peer(self, public_key: str) -> MutationOutcome:
        """Detach a peer from the interface."""
        argv = ["wg", "set", self.interface, "peer", public_key, "remove"]
        outcome = await self._mutate(PeerOperation.REMOVE, public_key, argv)
        wg_logger.info(f"✅ Peer removed: {short_key(public_key)}")
        return outcome

    async def _mutate(
        self, operation: PeerOperation, public_key: str, argv: List[str]
    ) -> MutationOutcome:
        async with self._get_lock():
            try:
                await self.executor.run(argv)
            except ExecError as e:
                wg_logger.error(
                    f"❌ Failed to {operation.value} peer {short_key(public_key)}: "
                    f"{escape(str(e))}"
                )
                raise MutationError(operation.value, public_key, e) from e

            persisted = await self._save_config()

        return MutationOutcome(
            operation=operation, public_key=public_key, persisted=persisted
        )

    async def _save_config(self) -> bool:
        """Persist the running config; failure only gets logged."""
        try:
            await self.executor.run(["wg-quick", "save", self.interface])
            return True
        except ExecError as e:
            wg_logger.info(
                f"Note: Could not save WireGuard config automatically ({escape(str(e))})"
            )
            return False
