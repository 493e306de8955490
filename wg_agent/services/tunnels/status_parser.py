"""
WireGuard Status Parser

Turns the text printed by ``wg show <iface>`` and ``ip link show <iface>``
into structured data. The grammar is line-prefix dispatch plus regex field
extraction; lines that are not recognised are skipped.
"""

import re
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

from .schemas import ByteQuantity, ParsedStatus, PeerRecord


PEER_PREFIX = "peer:"
INTERFACE_PREFIX = "interface:"
LISTENING_PORT_PREFIX = "listening port:"

# Indicators that the link is up. WireGuard interfaces are point-to-point
# and usually report "state UNKNOWN" rather than "state UP".
LINK_UP_INDICATORS = ("state UP", "state UNKNOWN", "LOWER_UP")

_PORT_RE = re.compile(r"listening port:\s*(\d+)")
_TRANSFER_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*([A-Za-z]+)\s+received,\s*"
    r"(\d+(?:\.\d+)?)\s*([A-Za-z]+)\s+sent"
)
_AGE_UNIT_RE = re.compile(r"(\d+)\s*(year|day|hour|minute|second)s?\b", re.IGNORECASE)

_UNIT_SECONDS = {
    "year": 365 * 24 * 3600,
    "day": 24 * 3600,
    "hour": 3600,
    "minute": 60,
    "second": 1,
}


def parse_handshake_age(phrase: Optional[str]) -> Optional[timedelta]:
    """
    Convert a relative handshake phrase into an age.

    "2 minutes, 10 seconds ago" -> 130s, "Now" -> 0s, "Never" -> None.
    Each unit is matched independently, so any of them may be missing.
    The result is only as precise as the phrase (whole seconds at best).
    """
    if not phrase:
        return None

    text = phrase.strip()
    if text.lower() == "now":
        return timedelta(0)

    matches = _AGE_UNIT_RE.findall(text)
    if not matches:
        return None

    seconds = 0
    for value, unit in matches:
        seconds += int(value) * _UNIT_SECONDS[unit.lower()]
    return timedelta(seconds=seconds)


def parse_transfer(value: str) -> Tuple[Optional[ByteQuantity], Optional[ByteQuantity]]:
    """Parse '1.23 KiB received, 4.56 MiB sent' into (received, sent)."""
    match = _TRANSFER_RE.search(value)
    if not match:
        return None, None
    received = ByteQuantity(float(match.group(1)), match.group(2))
    sent = ByteQuantity(float(match.group(3)), match.group(4))
    return received, sent


def _set_endpoint(peer: PeerRecord, value: str) -> None:
    peer.endpoint = value or None


def _set_allowed_ips(peer: PeerRecord, value: str) -> None:
    peer.allowed_ips = value or None


def _set_handshake(peer: PeerRecord, value: str) -> None:
    peer.latest_handshake = value or None
    peer.handshake_age = parse_handshake_age(value)


def _set_transfer(peer: PeerRecord, value: str) -> None:
    peer.bytes_received, peer.bytes_sent = parse_transfer(value)


# Recognised peer attribute lines: prefix -> handler
PEER_FIELD_HANDLERS: Dict[str, Callable[[PeerRecord, str], None]] = {
    "endpoint:": _set_endpoint,
    "allowed ips:": _set_allowed_ips,
    "latest handshake:": _set_handshake,
    "transfer:": _set_transfer,
}


def parse_wg_show(text: str) -> ParsedStatus:
    """Parse the full output of ``wg show <iface>``."""
    result = ParsedStatus()
    peers: Dict[str, PeerRecord] = {}
    current: Optional[PeerRecord] = None

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith(PEER_PREFIX):
            public_key = line[len(PEER_PREFIX):].strip()
            if not public_key:
                current = None
                continue
            # A repeated key selects the existing record instead of a duplicate
            current = peers.setdefault(public_key, PeerRecord(public_key=public_key))
            continue

        if line.startswith(INTERFACE_PREFIX):
            current = None
            continue

        if current is None:
            if line.startswith(LISTENING_PORT_PREFIX) and result.listening_port is None:
                match = _PORT_RE.match(line)
                if match:
                    result.listening_port = int(match.group(1))
            continue

        for prefix, handler in PEER_FIELD_HANDLERS.items():
            if line.startswith(prefix):
                handler(current, line[len(prefix):].strip())
                break

    result.peers = list(peers.values())
    return result


def count_peers(text: str) -> int:
    """Count distinct peer blocks without parsing their attributes."""
    keys = set()
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if line.startswith(PEER_PREFIX):
            key = line[len(PEER_PREFIX):].strip()
            if key:
                keys.add(key)
    return len(keys)


def is_link_up(text: str, interface: str) -> bool:
    """True if ``ip link show`` output names the interface and shows it up."""
    if not text or not re.search(rf"(^|\s){re.escape(interface)}[:@\s]", text):
        return False
    return any(indicator in text for indicator in LINK_UP_INDICATORS)


def humanize_age(age: timedelta) -> str:
    """Render an age the way ``wg show`` does: '2 minutes, 30 seconds'."""
    remaining = int(age.total_seconds())
    if remaining <= 0:
        return "now"

    parts = []
    for unit in ("year", "day", "hour", "minute", "second"):
        size = _UNIT_SECONDS[unit]
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count} {unit}{'s' if count != 1 else ''}")
    return ", ".join(parts)
