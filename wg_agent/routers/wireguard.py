import sys

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from wg_agent.core.config import settings
from wg_agent.dependencies.services import get_resource_sampler, get_tunnel_service
from wg_agent.schemas.status import (
    HealthResponse,
    PeerInfo,
    PeerListResponse,
    TransferInfo,
    TunnelStatusResponse,
)
from wg_agent.services.resource_sampler import ResourceSampler
from wg_agent.services.tunnels import TunnelSnapshot, TunnelStatusService, classify

router = APIRouter(tags=["wireguard"])


def _status_response(snapshot: TunnelSnapshot) -> TunnelStatusResponse:
    return TunnelStatusResponse(
        status=snapshot.status.value,
        interface=snapshot.interface,
        port=snapshot.listening_port,
        peers=snapshot.peer_count,
        last_handshake=snapshot.most_recent_handshake,
        running=snapshot.interface_up,
        raw=snapshot.raw_text,
        error=snapshot.error,
        platform=sys.platform,
        is_windows=settings.is_windows,
        wireguard_available=not settings.is_windows and snapshot.error is None,
    )


@router.get("/status", response_model=TunnelStatusResponse)
async def get_status(
    tunnel_service: TunnelStatusService = Depends(get_tunnel_service),
):
    """Detailed state of the WireGuard interface."""
    snapshot = await tunnel_service.get_status_detailed()
    return _status_response(snapshot)


@router.get("/health", response_model=HealthResponse)
async def get_health(
    tunnel_service: TunnelStatusService = Depends(get_tunnel_service),
    sampler: ResourceSampler = Depends(get_resource_sampler),
):
    """Health verdict for the tunnel plus the current system load."""
    snapshot = await tunnel_service.get_status_detailed()
    verdict = classify(snapshot)
    system_load = await sampler.get_system_load()

    return HealthResponse(
        status=verdict.status.value,
        reason=verdict.reason,
        wireguard=_status_response(snapshot),
        system_load=system_load,
        platform=sys.platform,
        is_windows=settings.is_windows,
        wireguard_available=not settings.is_windows and snapshot.error is None,
    )


@router.get("/peers", response_model=PeerListResponse)
async def get_peers(
    tunnel_service: TunnelStatusService = Depends(get_tunnel_service),
):
    """Per-peer detail parsed from ``wg show``."""
    snapshot = await tunnel_service.get_status_detailed()

    if snapshot.error is not None:
        body = PeerListResponse(success=False, peers=[], count=0, error=snapshot.error)
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    peers = [
        PeerInfo(
            public_key=peer.public_key,
            endpoint=peer.endpoint,
            allowed_ips=peer.allowed_ips,
            latest_handshake=peer.latest_handshake,
            transfer=TransferInfo(
                received=str(peer.bytes_received) if peer.bytes_received else None,
                sent=str(peer.bytes_sent) if peer.bytes_sent else None,
            ),
        )
        for peer in snapshot.peers
    ]
    return PeerListResponse(peers=peers, count=len(peers))
