import logging
from typing import Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme
from rich.traceback import install as install_rich_traceback

from wg_agent.core.config import settings

# Install rich traceback handling
install_rich_traceback(show_locals=settings.DEBUG)

# Create rich console with custom theme
console = Console(
    theme=Theme(
        {
            "info": "cyan",
            "warning": "yellow",
            "error": "red",
            "debug": "grey50",
            "wireguard": "green",
            "heartbeat": "blue",
            "channel": "magenta",
        }
    )
)

# Configure rich handler
rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    tracebacks_show_locals=settings.DEBUG,
    markup=True,
    show_time=True,
    show_path=settings.DEBUG,
)

_level = logging.DEBUG if settings.DEBUG else getattr(
    logging, settings.LOG_LEVEL.upper(), logging.INFO
)

# Create logger
logger = logging.getLogger("wg_agent")
logger.setLevel(_level)

# Remove existing handlers and add rich handler
logger.handlers = []
logger.addHandler(rich_handler)
logger.propagate = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance with rich formatting."""
    logger_name = name or "wg_agent"
    log = logging.getLogger(logger_name)

    # Configure logger if not already configured
    if not log.handlers:
        log.setLevel(_level)
        log.addHandler(rich_handler)
        log.propagate = False

    return log


# Component loggers
agent_logger = get_logger("wg_agent.agent")
wg_logger = get_logger("wg_agent.wireguard")
heartbeat_logger = get_logger("wg_agent.heartbeat")
channel_logger = get_logger("wg_agent.channel")


def log_command(log: logging.Logger, argv: Sequence[str], sensitive: bool = False) -> None:
    """Log a command execution with proper formatting."""
    if sensitive:
        log.debug("[bold]Executing command:[/bold] <sensitive command>")
    else:
        log.debug(f"[bold]Executing command:[/bold] {escape(' '.join(argv))}")


def log_heartbeat(success: bool, details: dict) -> None:
    """Log the outcome of one heartbeat cycle on a single line."""
    marker = "[green]✅[/green]" if success else "[red]❌[/red]"
    summary = ", ".join(f"{k}={escape(str(v))}" for k, v in details.items())
    if success:
        heartbeat_logger.info(f"{marker} Heartbeat sent: {summary}")
    else:
        heartbeat_logger.error(f"{marker} Heartbeat failed: {summary}")


def short_key(public_key: str) -> str:
    """Shorten a WireGuard public key for log output (markup-escaped)."""
    shortened = f"{public_key[:16]}..." if len(public_key) > 16 else public_key
    return escape(shortened)
