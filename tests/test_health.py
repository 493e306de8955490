from datetime import timedelta

import pytest

from wg_agent.services.tunnels import HealthStatus, PeerRecord, TunnelSnapshot, classify


def _snapshot(interface_up=True, ages=(), raw_text=""):
    peers = []
    for i, age in enumerate(ages):
        seconds = None if age is None else int(age.total_seconds())
        peers.append(PeerRecord(
            public_key=f"key{i}=",
            latest_handshake=None if age is None else f"{seconds} seconds ago",
            handshake_age=age,
        ))
    return TunnelSnapshot(
        interface="wg0",
        interface_up=interface_up,
        peer_count=len(peers),
        peers=peers,
        raw_text=raw_text,
    )


def test_interface_down_wins_over_everything():
    verdict = classify(_snapshot(interface_up=False, ages=[timedelta(seconds=5)]))
    assert verdict.status == HealthStatus.DOWN
    assert verdict.reason == "tunnel interface is down"


def test_no_peers_is_down():
    verdict = classify(_snapshot(ages=[]))
    assert verdict.status == HealthStatus.DOWN
    assert verdict.reason == "no peers connected"


def test_peers_without_handshake_are_degraded():
    verdict = classify(_snapshot(ages=[None, None]))
    assert verdict.status == HealthStatus.DEGRADED
    assert verdict.reason == "no handshake detected"


def test_stale_handshake_is_degraded():
    verdict = classify(_snapshot(ages=[timedelta(minutes=3)]))
    assert verdict.status == HealthStatus.DEGRADED
    assert verdict.reason.startswith("last handshake was more than 2 minutes ago")
    assert "3 minutes" in verdict.reason


def test_fresh_handshake_is_healthy():
    verdict = classify(_snapshot(ages=[timedelta(seconds=45)]))
    assert verdict.status == HealthStatus.HEALTHY
    assert verdict.reason == "tunnel is healthy, 1 peer(s) connected"


@pytest.mark.parametrize("seconds,status", [
    (119, HealthStatus.HEALTHY),
    (120, HealthStatus.HEALTHY),
    (121, HealthStatus.DEGRADED),
])
def test_stale_threshold(seconds, status):
    assert classify(_snapshot(ages=[timedelta(seconds=seconds)])).status == status


def test_freshest_peer_decides():
    verdict = classify(_snapshot(ages=[timedelta(hours=2), None, timedelta(seconds=10)]))
    assert verdict.status == HealthStatus.HEALTHY
    assert verdict.reason == "tunnel is healthy, 3 peer(s) connected"


def test_verdict_ignores_raw_text():
    a = classify(_snapshot(ages=[timedelta(seconds=10)], raw_text="peer: x="))
    b = classify(_snapshot(ages=[timedelta(seconds=10)], raw_text="something else"))
    assert a == b


def test_most_recent_handshake_phrase():
    snapshot = _snapshot(ages=[timedelta(seconds=90), timedelta(seconds=12)])
    assert snapshot.most_recent_handshake == "12 seconds ago"
    assert snapshot.most_recent_handshake_age == timedelta(seconds=12)
