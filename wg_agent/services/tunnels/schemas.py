"""
Schemas for WireGuard Tunnel Monitoring

Data classes for tunnel snapshots, peers and health verdicts.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from .enums import HealthStatus, PeerOperation, TunnelStatus


_UNIT_FACTORS = {
    "B": 1,
    "KIB": 1024,
    "MIB": 1024 ** 2,
    "GIB": 1024 ** 3,
    "TIB": 1024 ** 4,
    "PIB": 1024 ** 5,
    "KB": 1000,
    "MB": 1000 ** 2,
    "GB": 1000 ** 3,
    "TB": 1000 ** 4,
}


@dataclass
class ByteQuantity:
    """A humanized byte count as printed by ``wg show`` (e.g. 1.23 MiB)."""
    value: float
    unit: str

    def to_bytes(self) -> Optional[int]:
        factor = _UNIT_FACTORS.get(self.unit.upper())
        if factor is None:
            return None
        return int(self.value * factor)

    def __str__(self) -> str:
        value = int(self.value) if self.value.is_integer() else self.value
        return f"{value} {self.unit}"


@dataclass
class PeerRecord:
    """One peer block from ``wg show``."""
    public_key: str
    endpoint: Optional[str] = None
    allowed_ips: Optional[str] = None
    latest_handshake: Optional[str] = None
    handshake_age: Optional[timedelta] = None
    bytes_received: Optional[ByteQuantity] = None
    bytes_sent: Optional[ByteQuantity] = None


@dataclass
class ParsedStatus:
    """Result of parsing ``wg show`` output."""
    listening_port: Optional[int] = None
    peers: List[PeerRecord] = field(default_factory=list)


@dataclass
class TunnelSnapshot:
    """Point-in-time view of the tunnel interface."""
    interface: str
    interface_up: bool
    peer_count: int = 0
    listening_port: Optional[int] = None
    peers: List[PeerRecord] = field(default_factory=list)
    raw_text: str = ""
    error: Optional[str] = None

    @property
    def status(self) -> TunnelStatus:
        return TunnelStatus.UP if self.interface_up else TunnelStatus.DOWN

    @property
    def most_recent_handshake_age(self) -> Optional[timedelta]:
        ages = [p.handshake_age for p in self.peers if p.handshake_age is not None]
        return min(ages) if ages else None

    @property
    def most_recent_handshake(self) -> Optional[str]:
        """Raw handshake phrase of the peer with the freshest handshake."""
        freshest = None
        for peer in self.peers:
            if peer.handshake_age is None:
                continue
            if freshest is None or peer.handshake_age < freshest.handshake_age:
                freshest = peer
        return freshest.latest_handshake if freshest else None

    @classmethod
    def down(cls, interface: str, error: Optional[str] = None) -> "TunnelSnapshot":
        return cls(interface=interface, interface_up=False, error=error)


@dataclass
class HealthVerdict:
    """Health classification of a snapshot."""
    status: HealthStatus
    reason: str


@dataclass
class MutationOutcome:
    """Result of a successful peer mutation; ``persisted`` reports the save step."""
    operation: PeerOperation
    public_key: str
    persisted: bool
