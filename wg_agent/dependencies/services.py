"""
Dependency injection for the agent's services
"""

from functools import lru_cache

from wg_agent.services.process_executor import ProcessExecutor, process_executor
from wg_agent.services.resource_sampler import ResourceSampler
from wg_agent.services.tunnels import TunnelStatusService


def get_process_executor() -> ProcessExecutor:
    return process_executor


@lru_cache()
def get_tunnel_service() -> TunnelStatusService:
    """
    Dependency injection for TunnelStatusService.

    Returns a singleton instance that will be reused across requests.
    """
    return TunnelStatusService(executor=process_executor)


@lru_cache()
def get_resource_sampler() -> ResourceSampler:
    return ResourceSampler(executor=process_executor)
