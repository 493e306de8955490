import contextlib
import socket
from typing import Dict, List, Sequence

import pytest
from aiohttp.test_utils import TestServer

from wg_agent.core.exceptions import SpawnError


WG_SHOW_TWO_PEERS = """\
interface: wg0
  public key: c2VydmVyLXB1YmxpYy1rZXktLS0tLS0tLS0tLS0tLS0=
  private key: (hidden)
  listening port: 51820

peer: cGVlci1hLXB1YmxpYy1rZXktLS0tLS0tLS0tLS0tLS0=
  endpoint: 203.0.113.10:51820
  allowed ips: 10.0.0.2/32
  latest handshake: 1 minute, 5 seconds ago
  transfer: 1.50 MiB received, 320.25 KiB sent

peer: cGVlci1iLXB1YmxpYy1rZXktLS0tLS0tLS0tLS0tLS0=
  allowed ips: 10.0.0.3/32
"""

WG_SHOW_NO_PEERS = """\
interface: wg0
  public key: c2VydmVyLXB1YmxpYy1rZXktLS0tLS0tLS0tLS0tLS0=
  private key: (hidden)
  listening port: 51820
"""

IP_LINK_UP = (
    "5: wg0: <POINTOPOINT,NOARP,UP,LOWER_UP> mtu 1420 qdisc noqueue "
    "state UNKNOWN mode DEFAULT group default qlen 1000\n"
    "    link/none \n"
)

IP_LINK_DOWN = (
    "5: wg0: <POINTOPOINT,NOARP> mtu 1420 qdisc noop "
    "state DOWN mode DEFAULT group default qlen 1000\n"
    "    link/none \n"
)


class FakeExecutor:
    """
    Stand-in for ProcessExecutor that answers from a table.

    Keys are argv tuples. A value may be a string (stdout), an exception
    instance (raised) or a list of those (consumed one per call). Commands
    missing from the table fail like a missing binary.
    """

    def __init__(self, responses: Dict[tuple, object] = None):
        self.responses = dict(responses or {})
        self.calls: List[List[str]] = []

    async def run(self, argv: Sequence[str], timeout=None) -> str:
        argv = [str(arg) for arg in argv]
        self.calls.append(argv)

        result = self.responses.get(tuple(argv))
        if isinstance(result, list):
            result = result.pop(0) if result else None
        if result is None:
            raise SpawnError(argv, "No such file or directory")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_executor():
    """Factory for FakeExecutor instances."""
    return FakeExecutor


@pytest.fixture
def healthy_executor():
    return FakeExecutor({
        ("wg", "show", "wg0"): WG_SHOW_TWO_PEERS,
        ("ip", "link", "show", "wg0"): IP_LINK_UP,
    })


@pytest.fixture
def serve():
    """Run an aiohttp application on a local port for the duration of a block."""

    @contextlib.asynccontextmanager
    async def _serve(app):
        server = TestServer(app)
        await server.start_server()
        try:
            yield f"http://{server.host}:{server.port}"
        finally:
            await server.close()

    return _serve


@pytest.fixture
def unused_url():
    """Base URL of a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"
