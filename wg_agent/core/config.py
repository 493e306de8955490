from pydantic_settings import BaseSettings
from typing import Optional
import sys


class Settings(BaseSettings):
    # Debug settings
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    PROJECT_NAME: str = "WireGuard VPN Agent"

    # Backend settings
    BACKEND_URL: str = "http://localhost:5000"
    SERVER_ID: str = ""  # Required, checked at startup
    API_KEY: str = ""  # Sent as X-API-Key when set
    WS_URL: Optional[str] = None  # Command channel is inert without it

    # Local HTTP server
    AGENT_PORT: int = 3001

    # Timing (seconds)
    HEARTBEAT_INTERVAL: float = 30
    HEARTBEAT_TIMEOUT: float = 10
    RECONNECT_DELAY: float = 5
    COMMAND_TIMEOUT: float = 10
    CPU_SAMPLE_INTERVAL: float = 1

    # WireGuard settings
    WG_INTERFACE: str = "wg0"
    DEFAULT_ALLOWED_IPS: str = "10.0.0.2/32"
    DEFAULT_WG_PORT: int = 51820

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def is_windows(self) -> bool:
        return sys.platform == "win32"


settings = Settings()
