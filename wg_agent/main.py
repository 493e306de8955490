import signal
import sys
from typing import List

from fastapi import FastAPI
from rich.markup import escape

from wg_agent.core.config import settings
from wg_agent.core.logging import agent_logger, console
from wg_agent.dependencies.services import get_resource_sampler, get_tunnel_service
from wg_agent.routers import system, wireguard
from wg_agent.services.heartbeat_task import HeartbeatTask
from wg_agent.services.tunnels import PeerMutator
from wg_agent.websocket import CommandChannel

# Failures of background drivers that must end the process
fatal_errors: List[BaseException] = []


def _on_fatal(exc: BaseException) -> None:
    fatal_errors.append(exc)
    agent_logger.critical("Fatal error in background task, shutting down")
    signal.raise_signal(signal.SIGTERM)


def create_app(start_background: bool = True) -> FastAPI:
    """Build the agent's FastAPI application."""
    app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0")

    app.include_router(wireguard.router)
    app.include_router(system.router)

    tunnel_service = get_tunnel_service()
    app.state.heartbeat_task = HeartbeatTask(
        tunnel_service=tunnel_service,
        sampler=get_resource_sampler(),
        on_fatal=_on_fatal,
    )
    app.state.command_channel = CommandChannel(mutator=PeerMutator())

    @app.get("/")
    async def read_root():
        return {
            "message": f"{settings.PROJECT_NAME} is running",
            "serverId": settings.SERVER_ID,
            "heartbeat": app.state.heartbeat_task.get_status(),
            "commandChannel": app.state.command_channel.get_status(),
        }

    if not start_background:
        return app

    @app.on_event("startup")
    async def startup_event():
        """Log configuration, then start the heartbeat and command channel."""
        agent_logger.info(f"[bold green]🚀 Starting {settings.PROJECT_NAME}[/bold green]")
        agent_logger.info(
            f"  [cyan]Platform:[/cyan] {sys.platform}"
            f"{' (Windows - WireGuard commands will not work)' if settings.is_windows else ''}"
        )
        agent_logger.info(f"  [cyan]Backend URL:[/cyan] {escape(settings.BACKEND_URL)}")
        agent_logger.info(f"  [cyan]Server ID:[/cyan] {escape(settings.SERVER_ID)}")
        agent_logger.info(f"  [cyan]Heartbeat interval:[/cyan] {settings.HEARTBEAT_INTERVAL:g}s")
        agent_logger.info(f"  [cyan]HTTP port:[/cyan] {settings.AGENT_PORT}")
        agent_logger.info(f"  [cyan]Interface:[/cyan] {escape(settings.WG_INTERFACE)}")

        install = tunnel_service.check_installation()
        if install["installed"]:
            agent_logger.info(f"✅ {install['message']}")
        else:
            agent_logger.warning(f"⚠️  {install['message']}")

        await app.state.heartbeat_task.start()
        await app.state.command_channel.start()
        agent_logger.info("✅ Agent is running. Press Ctrl+C to stop.")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close the command channel before exit, then stop heartbeats."""
        agent_logger.info("🛑 Shutting down agent...")
        await app.state.command_channel.close()
        await app.state.heartbeat_task.stop()

    return app


app = create_app()


def run() -> None:
    """Console entry point: validate identity and serve until stopped."""
    if not settings.SERVER_ID:
        agent_logger.error("❌ Error: SERVER_ID environment variable is required")
        sys.exit(1)

    import uvicorn

    console.print(
        f"[bold green]Agent HTTP server listening on port {settings.AGENT_PORT}[/bold green]"
    )
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.AGENT_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )

    if fatal_errors:
        sys.exit(1)
