"""
WireGuard Tunnel Package

Status parsing, health classification and peer mutation for the local
WireGuard interface.
"""

from .tunnel_service import TunnelStatusService
from .peer_mutator import PeerMutator
from .health import classify
from .enums import TunnelStatus, HealthStatus, PeerOperation
from .schemas import (
    ByteQuantity,
    HealthVerdict,
    MutationOutcome,
    PeerRecord,
    TunnelSnapshot,
)

__all__ = [
    'TunnelStatusService',
    'PeerMutator',
    'classify',
    'TunnelStatus',
    'HealthStatus',
    'PeerOperation',
    'ByteQuantity',
    'HealthVerdict',
    'MutationOutcome',
    'PeerRecord',
    'TunnelSnapshot',
]
