"""
Tunnel health classification.

Rules are evaluated in order and the first match wins: a missing interface
or peer set outranks a stale handshake, which outranks everything else.
"""

from datetime import timedelta

from .enums import HealthStatus
from .schemas import HealthVerdict, TunnelSnapshot
from .status_parser import humanize_age

HANDSHAKE_STALE_AFTER = timedelta(seconds=120)


def classify(snapshot: TunnelSnapshot) -> HealthVerdict:
    """Map a snapshot to a health verdict."""
    if not snapshot.interface_up:
        return HealthVerdict(HealthStatus.DOWN, "tunnel interface is down")

    if snapshot.peer_count == 0:
        return HealthVerdict(HealthStatus.DOWN, "no peers connected")

    age = snapshot.most_recent_handshake_age
    if age is None:
        return HealthVerdict(HealthStatus.DEGRADED, "no handshake detected")

    if age > HANDSHAKE_STALE_AFTER:
        return HealthVerdict(
            HealthStatus.DEGRADED,
            f"last handshake was more than 2 minutes ago ({humanize_age(age)} ago)",
        )

    return HealthVerdict(
        HealthStatus.HEALTHY,
        f"tunnel is healthy, {snapshot.peer_count} peer(s) connected",
    )
