from typing import List, Optional

from pydantic import BaseModel, Field


class PlatformInfo(BaseModel):
    platform: str
    is_windows: bool = Field(..., alias="isWindows")
    wireguard_available: bool = Field(..., alias="wireguardAvailable")

    class Config:
        populate_by_name = True


class TunnelStatusResponse(PlatformInfo):
    """Detailed interface state returned by GET /status."""
    success: bool = True
    status: str
    interface: str
    port: Optional[int] = None
    peers: int = 0
    last_handshake: Optional[str] = Field(None, alias="lastHandshake")
    running: bool
    raw: str = ""
    error: Optional[str] = None


class HealthResponse(PlatformInfo):
    """Health verdict returned by GET /health."""
    success: bool = True
    status: str
    reason: str
    wireguard: TunnelStatusResponse
    system_load: float = Field(..., alias="systemLoad")


class TransferInfo(BaseModel):
    received: Optional[str] = None
    sent: Optional[str] = None


class PeerInfo(BaseModel):
    public_key: str = Field(..., alias="publicKey")
    endpoint: Optional[str] = None
    allowed_ips: Optional[str] = Field(None, alias="allowedIPs")
    latest_handshake: Optional[str] = Field(None, alias="latestHandshake")
    transfer: TransferInfo = TransferInfo()

    class Config:
        populate_by_name = True


class PeerListResponse(BaseModel):
    success: bool = True
    peers: List[PeerInfo] = []
    count: int = 0
    error: Optional[str] = None


class ServiceResponse(BaseModel):
    success: bool = True
    service: str
    error: Optional[str] = None


class PortResponse(BaseModel):
    success: bool = True
    udp_listening: bool = Field(..., alias="udpListening")
    port: int
    error: Optional[str] = None

    class Config:
        populate_by_name = True
