"""Listening ports from traced ``bind`` calls."""

from typing import Any, Iterable, Optional

from fix_dockerfile.schema import SyscallRecord

MIN_PORT = 1
MAX_PORT = 65535


def _coerce_port(value: Any) -> Optional[int]:
    # htons(5000) arrives as {"call": "htons", "params": [5000]}
    if isinstance(value, dict):
        params = value.get("params") or []
        value = params[0] if params else None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        digits = ""
        for char in value.strip():
            if not char.isdigit():
                break
            digits += char
        return int(digits) if digits else None
    return None


def extract_ports(records: Iterable[SyscallRecord]) -> list[int]:
    """
    Ports the traced process bound, in first-seen order.

    Port 0 (ephemeral) and duplicates are dropped. Both IPv4 ``sin_port`` and
    IPv6 ``sin6_port`` socket addresses are understood.
    """
    ports: list[int] = []
    for record in records:
        if record.name != "bind" or len(record.args) < 2:
            continue
        address = record.args[1]
        if not isinstance(address, dict):
            continue
        raw = address.get("sin6_port")
        if raw is None:
            raw = address.get("sin_port")
        port = _coerce_port(raw)
        if port is None or not MIN_PORT <= port <= MAX_PORT:
            continue
        if port not in ports:
            ports.append(port)
    return ports


def records_from_port_bindings(ports: Iterable[int]) -> list[SyscallRecord]:
    """Synthetic ``bind`` records for ports a live container already listens on."""
    return [
        SyscallRecord(
            name="bind",
            args=(
                0,
                {
                    "sa_family": "AF_INET",
                    "sin_port": {"call": "htons", "params": [port]},
                    "sin_addr": {"call": "inet_addr", "params": ["0.0.0.0"]},
                },
                16,
            ),
            result=0,
        )
        for port in ports
    ]
