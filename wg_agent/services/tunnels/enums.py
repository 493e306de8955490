"""
Enums for WireGuard Tunnel Monitoring

Defines status and health enumerations used throughout the tunnel system.
"""

from enum import Enum


class TunnelStatus(Enum):
    """Link state of the tunnel interface."""
    UP = "up"
    DOWN = "down"


class HealthStatus(Enum):
    """Health verdict for the tunnel."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class PeerOperation(Enum):
    """Mutation applied to the interface's peer set."""
    ADD = "add"
    REMOVE = "remove"
