from pydantic import BaseModel, Field


class HeartbeatMetrics(BaseModel):
    """Host metrics block of a heartbeat."""
    cpu_usage: float = Field(..., alias="cpuUsage")
    ram_usage: float = Field(..., alias="ramUsage")
    system_load: float = Field(..., alias="systemLoad")

    class Config:
        populate_by_name = True


class HeartbeatReport(BaseModel):
    """Payload POSTed to /agent/heartbeat once per cycle."""
    server_id: str = Field(..., alias="serverId")
    wg_running: bool = Field(..., alias="wgRunning")
    load: float
    active_peers: int = Field(..., alias="activePeers", ge=0)
    metrics: HeartbeatMetrics

    class Config:
        populate_by_name = True

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
