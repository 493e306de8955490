import pytest
from pydantic import ValidationError

from wg_agent.schemas.commands import (
    AddPeerCommand,
    PeerAck,
    RemovePeerCommand,
    UnknownCommandError,
    parse_command,
)
from wg_agent.schemas.heartbeat import HeartbeatMetrics, HeartbeatReport

KEY = "cGVlci1hLXB1YmxpYy1rZXktLS0tLS0tLS0tLS0tLS0="


def test_parse_add_peer():
    command = parse_command({"type": "add_peer", "publicKey": KEY, "allowedIPs": "10.0.0.4/32"})

    assert isinstance(command, AddPeerCommand)
    assert command.public_key == KEY
    assert command.allowed_ips == "10.0.0.4/32"


def test_parse_add_peer_without_range():
    command = parse_command({"type": "add_peer", "publicKey": KEY, "allowedIPs": "  "})
    assert command.allowed_ips is None


def test_parse_add_peer_multiple_ranges():
    command = parse_command({
        "type": "add_peer",
        "publicKey": KEY,
        "allowedIPs": "10.0.0.4/32, fd00::4/128",
    })
    assert command.allowed_ips == "10.0.0.4/32, fd00::4/128"


def test_parse_remove_peer_ignores_extra_fields():
    command = parse_command({"type": "remove_peer", "publicKey": KEY, "requestId": 7})
    assert isinstance(command, RemovePeerCommand)


@pytest.mark.parametrize("message", [
    {"type": "status"},
    {"publicKey": KEY},
    {"type": ["add_peer"], "publicKey": KEY},
    "add_peer",
    None,
])
def test_unknown_messages(message):
    with pytest.raises(UnknownCommandError):
        parse_command(message)


@pytest.mark.parametrize("message", [
    {"type": "add_peer"},
    {"type": "add_peer", "publicKey": ""},
    {"type": "add_peer", "publicKey": "abc def"},
    {"type": "add_peer", "publicKey": KEY, "allowedIPs": "10.0.0.300/32"},
    {"type": "remove_peer", "publicKey": 42},
])
def test_malformed_commands(message):
    with pytest.raises(ValidationError):
        parse_command(message)


def test_ack_payload():
    ack = PeerAck.for_command(RemovePeerCommand(public_key=KEY), success=False)
    assert ack.to_payload() == {"type": "peer_removed", "success": False, "publicKey": KEY}


def test_heartbeat_payload_uses_wire_names():
    report = HeartbeatReport(
        server_id="srv-1",
        wg_running=True,
        load=12.5,
        active_peers=3,
        metrics=HeartbeatMetrics(cpu_usage=1.0, ram_usage=2.0, system_load=12.5),
    )

    assert report.to_payload() == {
        "serverId": "srv-1",
        "wgRunning": True,
        "load": 12.5,
        "activePeers": 3,
        "metrics": {"cpuUsage": 1.0, "ramUsage": 2.0, "systemLoad": 12.5},
    }


def test_heartbeat_rejects_negative_peer_count():
    with pytest.raises(ValidationError):
        HeartbeatReport(
            server_id="srv-1",
            wg_running=False,
            load=0,
            active_peers=-1,
            metrics=HeartbeatMetrics(cpu_usage=0, ram_usage=0, system_load=0),
        )


def test_rejected_ack_for_known_command():
    ack = PeerAck.rejected({"type": "add_peer", "publicKey": KEY, "allowedIPs": "bogus"})
    assert ack.to_payload() == {"type": "peer_added", "success": False, "publicKey": KEY}


@pytest.mark.parametrize("message", [
    {"type": "ping", "publicKey": KEY},
    {"type": "add_peer"},
    {"type": "remove_peer", "publicKey": ""},
    {"type": "remove_peer", "publicKey": 42},
])
def test_rejected_ack_needs_type_and_key(message):
    assert PeerAck.rejected(message) is None
