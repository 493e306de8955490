import pytest

from conftest import IP_LINK_DOWN, IP_LINK_UP, WG_SHOW_NO_PEERS, WG_SHOW_TWO_PEERS
from wg_agent.core.exceptions import ExecTimeoutError, NonZeroExitError
from wg_agent.services.tunnels import TunnelStatus, TunnelStatusService


@pytest.mark.asyncio
async def test_simple_status(healthy_executor):
    service = TunnelStatusService(executor=healthy_executor, interface="wg0")

    snapshot = await service.get_status_simple()

    assert snapshot.interface_up is True
    assert snapshot.status == TunnelStatus.UP
    assert snapshot.peer_count == 2
    assert snapshot.peers == []
    assert snapshot.error is None
    assert healthy_executor.calls == [
        ["wg", "show", "wg0"],
        ["ip", "link", "show", "wg0"],
    ]


@pytest.mark.asyncio
async def test_detailed_status(healthy_executor):
    service = TunnelStatusService(executor=healthy_executor, interface="wg0")

    snapshot = await service.get_status_detailed()

    assert snapshot.interface_up is True
    assert snapshot.peer_count == 2
    assert len(snapshot.peers) == 2
    assert snapshot.listening_port == 51820
    assert snapshot.most_recent_handshake == "1 minute, 5 seconds ago"
    assert snapshot.raw_text == WG_SHOW_TWO_PEERS


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    NonZeroExitError(["wg", "show", "wg0"], 1, "Unable to access interface: No such device"),
    ExecTimeoutError(["wg", "show", "wg0"], 10),
])
async def test_wg_failure_gives_down_snapshot(fake_executor, error):
    executor = fake_executor({
        ("wg", "show", "wg0"): error,
        ("ip", "link", "show", "wg0"): IP_LINK_UP,
    })
    service = TunnelStatusService(executor=executor, interface="wg0")

    for snapshot in (await service.get_status_simple(), await service.get_status_detailed()):
        assert snapshot.status == TunnelStatus.DOWN
        assert snapshot.peer_count == 0
        assert snapshot.error == str(error)


@pytest.mark.asyncio
async def test_missing_wg_binary(fake_executor):
    service = TunnelStatusService(executor=fake_executor(), interface="wg0")

    snapshot = await service.get_status_simple()

    assert snapshot.interface_up is False
    assert snapshot.peer_count == 0
    assert "No such file or directory" in snapshot.error


@pytest.mark.asyncio
async def test_link_down_with_peers(fake_executor):
    executor = fake_executor({
        ("wg", "show", "wg0"): WG_SHOW_TWO_PEERS,
        ("ip", "link", "show", "wg0"): IP_LINK_DOWN,
    })
    service = TunnelStatusService(executor=executor, interface="wg0")

    snapshot = await service.get_status_detailed()

    assert snapshot.interface_up is False
    assert snapshot.peer_count == 2


@pytest.mark.asyncio
async def test_ip_link_failure_means_down(fake_executor):
    executor = fake_executor({("wg", "show", "wg0"): WG_SHOW_NO_PEERS})
    service = TunnelStatusService(executor=executor, interface="wg0")

    snapshot = await service.get_status_simple()

    assert snapshot.interface_up is False
    assert snapshot.peer_count == 0
    assert snapshot.error is None
