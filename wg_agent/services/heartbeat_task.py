import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Set

import aiohttp
from rich.markup import escape

from wg_agent.core.config import settings
from wg_agent.core.exceptions import TransportError
from wg_agent.core.logging import agent_logger, heartbeat_logger, log_heartbeat
from wg_agent.schemas.heartbeat import HeartbeatMetrics, HeartbeatReport
from wg_agent.services.resource_sampler import ResourceSampler
from wg_agent.services.tunnels import TunnelStatusService


@dataclass
class HeartbeatOutcome:
    """Classified result of a single heartbeat attempt."""
    success: bool
    reason: Optional[str] = None
    kind: Optional[str] = None
    status_code: Optional[int] = None


class HeartbeatTask:
    """
    Background task that pushes a heartbeat to the backend on a fixed period.

    Ticks are anchored to the moment the task started, and each cycle runs
    as its own task: a slow or hanging request never pushes back the next
    tick, and consecutive cycles may overlap. Every cycle makes exactly one
    attempt; failures are logged and dropped.
    """

    def __init__(
        self,
        tunnel_service: Optional[TunnelStatusService] = None,
        sampler: Optional[ResourceSampler] = None,
        interval_seconds: Optional[float] = None,
        backend_url: Optional[str] = None,
        server_id: Optional[str] = None,
        api_key: Optional[str] = None,
        request_timeout: Optional[float] = None,
        on_fatal: Optional[Callable[[BaseException], None]] = None,
    ):
        self.tunnel_service = tunnel_service or TunnelStatusService()
        self.sampler = sampler or ResourceSampler()
        self.interval_seconds = interval_seconds or settings.HEARTBEAT_INTERVAL
        self.backend_url = (backend_url or settings.BACKEND_URL).rstrip("/")
        self.server_id = server_id if server_id is not None else settings.SERVER_ID
        self.api_key = api_key if api_key is not None else settings.API_KEY
        self.request_timeout = request_timeout or settings.HEARTBEAT_TIMEOUT
        self.on_fatal = on_fatal

        self._task: Optional[asyncio.Task] = None
        self._cycles: Set[asyncio.Task] = set()
        self._running = False
        self._cycles_started = 0
        self._total_sent = 0
        self._total_failed = 0
        self._last_success_time: Optional[datetime] = None
        self._last_outcome: Optional[HeartbeatOutcome] = None

    @property
    def heartbeat_url(self) -> str:
        return f"{self.backend_url}/agent/heartbeat"

    async def start(self):
        """Start the heartbeat loop; the first cycle runs immediately."""
        if self._running:
            heartbeat_logger.warning("Heartbeat task is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._ticker_loop())
        self._task.add_done_callback(self._on_ticker_done)
        heartbeat_logger.info(
            f"Started heartbeat with {self.interval_seconds:g}s interval "
            f"-> {escape(self.heartbeat_url)}"
        )

    async def stop(self):
        """Stop the loop and cancel any cycle still in flight."""
        if not self._running:
            return

        self._running = False
        pending = [t for t in [self._task, *self._cycles] if t is not None]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                heartbeat_logger.debug(
                    f"Heartbeat task ended with error during stop: {escape(str(e))}"
                )

        heartbeat_logger.info("Stopped heartbeat")

    def get_status(self) -> dict:
        """Get current heartbeat statistics"""
        last_success = (
            self._last_success_time.isoformat()
            if self._last_success_time else None
        )
        return {
            "interval_seconds": self.interval_seconds,
            "current_status": "active" if self._running else "inactive",
            "cycles_started": self._cycles_started,
            "total_sent": self._total_sent,
            "total_failed": self._total_failed,
            "last_success": last_success,
            "last_error": (
                self._last_outcome.reason
                if self._last_outcome and not self._last_outcome.success else None
            ),
        }

    async def _ticker_loop(self):
        """Spawn one cycle per tick, ticks anchored to the loop start."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        tick = 0

        while self._running:
            self._spawn_cycle()
            tick += 1
            delay = started + tick * self.interval_seconds - loop.time()
            if delay < 0:
                # Loop stalled past one or more ticks: skip them instead of bursting
                missed = int(-delay // self.interval_seconds) + 1
                tick += missed
                delay += missed * self.interval_seconds
            await asyncio.sleep(delay)

    def _spawn_cycle(self):
        self._cycles_started += 1
        task = asyncio.create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    def _on_ticker_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self._running = False
        agent_logger.critical(f"Heartbeat loop crashed: {escape(repr(exc))}", exc_info=exc)
        if self.on_fatal:
            self.on_fatal(exc)

    async def run_cycle(self) -> HeartbeatOutcome:
        """Build one report and make a single attempt to deliver it."""
        try:
            report = await self.build_report()
            body = await self.send_report(report)
        except TransportError as e:
            outcome = HeartbeatOutcome(
                success=False, reason=str(e), kind=e.kind, status_code=e.status_code
            )
            log_heartbeat(False, {"kind": e.kind, "error": str(e)})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            outcome = HeartbeatOutcome(success=False, reason=str(e), kind="error")
            heartbeat_logger.exception(f"❌ Heartbeat error: {escape(str(e))}")
        else:
            if body.get("success"):
                outcome = HeartbeatOutcome(success=True)
                self._last_success_time = datetime.now(timezone.utc)
                log_heartbeat(True, {
                    "WG": "RUNNING" if report.wg_running else "STOPPED",
                    "Load": f"{report.load:.1f}%",
                    "Peers": report.active_peers,
                })
            else:
                reason = body.get("message") or "backend did not report success"
                outcome = HeartbeatOutcome(success=False, reason=reason, kind="rejected")
                log_heartbeat(False, {"kind": "rejected", "error": reason})

        if outcome.success:
            self._total_sent += 1
        else:
            self._total_failed += 1
        self._last_outcome = outcome
        return outcome

    async def build_report(self) -> HeartbeatReport:
        """Snapshot first, then resource sample, then compose."""
        snapshot = await self.tunnel_service.get_status_simple()
        sample = await self.sampler.sample()
        return HeartbeatReport(
            server_id=self.server_id,
            wg_running=snapshot.interface_up,
            load=sample.load_percent,
            active_peers=snapshot.peer_count,
            metrics=HeartbeatMetrics(
                cpu_usage=sample.cpu_percent,
                ram_usage=sample.ram_percent,
                system_load=sample.load_percent,
            ),
        )

    async def send_report(self, report: HeartbeatReport) -> dict:
        """
        POST a report to the backend.

        Returns:
            Decoded JSON body of a 2xx response

        Raises:
            TransportError: classified as http_status, no_response,
                malformed_response or transport
        """
        headers = {}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            ) as session:
                async with session.post(
                    self.heartbeat_url, json=report.to_payload(), headers=headers
                ) as response:
                    text = await response.text()
                    if not 200 <= response.status < 300:
                        raise TransportError(
                            TransportError.HTTP_STATUS,
                            self._error_message(text) or response.reason or "request failed",
                            status_code=response.status,
                        )
        except asyncio.TimeoutError:
            raise TransportError(
                TransportError.NO_RESPONSE,
                f"No response from backend ({self.backend_url}) within {self.request_timeout:g}s",
            )
        except (aiohttp.ClientConnectorError, aiohttp.ServerDisconnectedError) as e:
            raise TransportError(
                TransportError.NO_RESPONSE,
                f"No response from backend ({self.backend_url}): {e}",
            )
        except aiohttp.ClientError as e:
            raise TransportError(TransportError.TRANSPORT, str(e) or type(e).__name__)

        try:
            body = json.loads(text)
        except ValueError:
            raise TransportError(
                TransportError.MALFORMED_RESPONSE, "backend returned a non-JSON body"
            )
        if not isinstance(body, dict):
            raise TransportError(
                TransportError.MALFORMED_RESPONSE, "backend returned a non-object JSON body"
            )
        return body

    @staticmethod
    def _error_message(text: str) -> Optional[str]:
        try:
            body = json.loads(text)
        except ValueError:
            return text.strip()[:200] or None
        if isinstance(body, dict):
            return body.get("message") or body.get("detail")
        return None
