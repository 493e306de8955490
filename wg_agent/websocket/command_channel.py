import asyncio
import json
from enum import Enum
from typing import Optional, Set
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError
from rich.markup import escape

from wg_agent.core.config import settings
from wg_agent.core.exceptions import MutationError
from wg_agent.core.logging import channel_logger, short_key
from wg_agent.schemas.commands import (
    AddPeerCommand,
    PeerAck,
    PeerCommand,
    UnknownCommandError,
    parse_command,
)
from wg_agent.services.tunnels import PeerMutator


class ChannelState(str, Enum):
    """Connection states of the command channel"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class CommandChannel:
    """
    Persistent WebSocket connection over which the backend pushes peer
    commands.

    The channel owns the single live connection handle. Whenever the
    connection ends (close frame, error, failed connect) it waits
    ``reconnect_delay`` seconds and connects again, for as long as the
    process runs. Without a configured URL the channel stays inert.
    """

    def __init__(
        self,
        mutator: Optional[PeerMutator] = None,
        ws_url: Optional[str] = None,
        server_id: Optional[str] = None,
        api_key: Optional[str] = None,
        reconnect_delay: Optional[float] = None,
    ):
        self.mutator = mutator or PeerMutator()
        self.ws_url = ws_url if ws_url is not None else settings.WS_URL
        self.server_id = server_id if server_id is not None else settings.SERVER_ID
        self.api_key = api_key if api_key is not None else settings.API_KEY
        self.reconnect_delay = (
            settings.RECONNECT_DELAY if reconnect_delay is None else reconnect_delay
        )

        self._state = ChannelState.DISCONNECTED
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None
        self._command_tasks: Set[asyncio.Task] = set()
        self._running = False
        self.connect_attempts = 0
        self.reconnect_attempts = 0
        self.commands_handled = 0

    @property
    def enabled(self) -> bool:
        return bool(self.ws_url)

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def url(self) -> str:
        base = self.ws_url.replace("http://", "ws://").replace("https://", "wss://")
        return f"{base.rstrip('/')}/agent/commands?serverId={quote(self.server_id, safe='')}"

    def _set_state(self, state: ChannelState):
        if state != self._state:
            channel_logger.debug(f"Command channel {self._state.value} -> {state.value}")
        self._state = state

    async def start(self):
        """Start connecting in the background (no-op if not configured)."""
        if not self.enabled:
            channel_logger.info("No WS_URL configured, command channel disabled")
            return
        if self._running:
            channel_logger.warning("Command channel is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_forever())
        channel_logger.info(f"Command channel starting -> {escape(self.url)}")

    async def close(self):
        """Close the live connection and stop reconnecting."""
        if not self._running:
            return
        self._running = False

        ws = self._ws
        if ws is not None and not ws.closed:
            await ws.close()

        for task in [self._task, *self._command_tasks]:
            if task is not None:
                task.cancel()
        for task in [self._task, *self._command_tasks]:
            if task is None:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._set_state(ChannelState.DISCONNECTED)
        channel_logger.info("🔌 Command channel closed")

    def get_status(self) -> dict:
        return {
            "enabled": self.enabled,
            "state": self._state.value,
            "connect_attempts": self.connect_attempts,
            "reconnect_attempts": self.reconnect_attempts,
            "commands_handled": self.commands_handled,
        }

    async def _run_forever(self):
        while self._running:
            await self._connect_once()
            if not self._running:
                break
            self.reconnect_attempts += 1
            channel_logger.info(
                f"🔌 WebSocket disconnected, reconnecting in {self.reconnect_delay:g} seconds..."
            )
            await asyncio.sleep(self.reconnect_delay)

    async def _connect_once(self):
        """Run one connection from connect to disconnect."""
        self._set_state(ChannelState.CONNECTING)
        self.connect_attempts += 1
        headers = {"X-API-Key": self.api_key} if self.api_key else None

        try:
            async with aiohttp.ClientSession(headers=headers) as session:
                async with session.ws_connect(self.url, heartbeat=30) as ws:
                    self._ws = ws
                    self._set_state(ChannelState.CONNECTED)
                    channel_logger.info("🔌 WebSocket connected to backend")

                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            self._handle_message(ws, msg.data)
                        elif msg.type == aiohttp.WSMsgType.BINARY:
                            self._handle_message(ws, msg.data.decode("utf-8", errors="replace"))
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            channel_logger.error(f"WebSocket error: {escape(str(ws.exception()))}")
                            break
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            channel_logger.error(f"WebSocket connection error: {escape(str(e))}")
        except Exception as e:
            channel_logger.exception(f"Unexpected command channel error: {escape(str(e))}")
        finally:
            self._ws = None
            self._set_state(ChannelState.DISCONNECTED)

    def _handle_message(self, ws: aiohttp.ClientWebSocketResponse, data: str):
        """Decode one frame and dispatch it if it is a known command."""
        try:
            message = json.loads(data)
        except ValueError:
            channel_logger.warning(f"Ignoring non-JSON message: {escape(repr(data[:100]))}")
            return

        try:
            command = parse_command(message)
        except UnknownCommandError as e:
            channel_logger.info(f"Ignoring message: {escape(str(e))}")
            return
        except ValidationError as e:
            ack = PeerAck.rejected(message)
            channel_logger.warning(
                f"Rejecting malformed {escape(str(message.get('type')))} command: "
                f"{e.error_count()} validation error(s)"
            )
            if ack is not None:
                self._track(self._send_ack(ws, ack))
            return

        self._track(self.dispatch(ws, command))

    def _track(self, coro):
        task = asyncio.create_task(coro)
        self._command_tasks.add(task)
        task.add_done_callback(self._command_tasks.discard)

    async def dispatch(
        self, ws: Optional[aiohttp.ClientWebSocketResponse], command: PeerCommand
    ) -> PeerAck:
        """Apply a command and acknowledge it on the connection it came from."""
        try:
            if isinstance(command, AddPeerCommand):
                await self.mutator.add_peer(command.public_key, command.allowed_ips)
            else:
                await self.mutator.remove_peer(command.public_key)
            success = True
        except MutationError as e:
            channel_logger.error(f"❌ Command {command.type} failed: {escape(str(e.cause))}")
            success = False
        except Exception as e:
            channel_logger.exception(
                f"❌ Unexpected error in {command.type} for "
                f"{short_key(command.public_key)}: {escape(str(e))}"
            )
            success = False

        self.commands_handled += 1
        ack = PeerAck.for_command(command, success)
        await self._send_ack(ws, ack)
        return ack

    async def _send_ack(self, ws: Optional[aiohttp.ClientWebSocketResponse], ack: PeerAck):
        if ws is None or ws.closed:
            channel_logger.warning(
                f"Connection closed before {ack.type} ack for {short_key(ack.public_key)}"
            )
            return

        try:
            await ws.send_json(ack.to_payload())
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            channel_logger.warning(f"Failed to send {ack.type} ack: {escape(str(e))}")
