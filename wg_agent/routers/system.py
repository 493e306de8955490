import re
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from rich.markup import escape

from wg_agent.core.config import settings
from wg_agent.core.exceptions import ExecError, NonZeroExitError
from wg_agent.core.logging import agent_logger
from wg_agent.dependencies.services import get_process_executor
from wg_agent.schemas.status import PortResponse, ServiceResponse
from wg_agent.services.process_executor import ProcessExecutor

router = APIRouter(tags=["system"])

# systemctl is-active exits 3 (inactive) or 1 (failed/unknown) for stopped units
_STOPPED_EXIT_CODES = (1, 3)


@router.get("/service", response_model=ServiceResponse)
async def get_service_status(
    executor: ProcessExecutor = Depends(get_process_executor),
):
    """Whether the wg-quick systemd unit for the interface is active."""
    unit = f"wg-quick@{settings.WG_INTERFACE}"
    try:
        stdout = await executor.run(["systemctl", "is-active", unit])
    except NonZeroExitError as e:
        if e.code in _STOPPED_EXIT_CODES:
            return ServiceResponse(service="stopped")
        body = ServiceResponse(success=False, service="stopped", error=str(e))
        return JSONResponse(status_code=500, content=body.model_dump())
    except ExecError as e:
        body = ServiceResponse(success=False, service="stopped", error=str(e))
        return JSONResponse(status_code=500, content=body.model_dump())

    active = stdout.strip().lower() == "active"
    return ServiceResponse(service="running" if active else "stopped")


@router.get("/port", response_model=PortResponse)
async def get_port_status(
    port: Optional[int] = Query(None, ge=1, le=65535),
    executor: ProcessExecutor = Depends(get_process_executor),
):
    """Whether a UDP socket is listening on the given port (ss, then netstat)."""
    port = port or settings.DEFAULT_WG_PORT
    pattern = re.compile(rf":{port}(?!\d)")

    for argv in (["ss", "-uln"], ["netstat", "-uln"]):
        try:
            stdout = await executor.run(argv)
        except ExecError as e:
            agent_logger.debug(f"{argv[0]} unavailable: {escape(str(e))}")
            continue
        if pattern.search(stdout):
            return PortResponse(udp_listening=True, port=port)

    return PortResponse(udp_listening=False, port=port)
