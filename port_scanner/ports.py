from __future__ import annotations

import logging
from typing import Iterable, List

from .errors import PortSpecError

logger = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535

COMMON_PORTS = (
    20, 21, 22, 23, 25, 53, 67, 68, 69, 80,
    110, 123, 135, 137, 138, 139, 143, 161, 162, 179,
    194, 389, 443, 445, 465, 514, 515, 587, 993, 995,
    1433, 1434, 1521, 1723, 2049, 2083, 2087, 3128, 3306, 3389,
    5432, 5900, 5985, 5986, 6379, 8080, 8443, 8888, 9090, 9200,
    10000, 27017,
)


def split_port_spec(spec: str) -> List[str]:
    return [part.strip() for part in spec.split(",") if part.strip()]


def _to_int(token: str, part: str) -> int:
    try:
        return int(part.strip())
    except ValueError:
        raise PortSpecError(token, f"Failed to parse port {part!r}") from None


def parse_token(token: str) -> List[int]:
    """
    Parses one port spec token into a list of ports.
    Supports:
    - Keywords: "common", "all"
    - Single ports: "80"
    - Ranges: "1-1024" (endpoints clamped to 1-65535)
    """
    token = token.strip()
    if not token:
        raise PortSpecError(token, "Empty port spec")

    keyword = token.lower()
    if keyword == "common":
        return list(COMMON_PORTS)
    if keyword == "all":
        return list(range(MIN_PORT, MAX_PORT + 1))

    if "-" in token:
        parts = token.split("-")
        if len(parts) != 2:
            raise PortSpecError(token, "Invalid port range format")
        start = _to_int(token, parts[0])
        end = _to_int(token, parts[1])
        if start > end:
            raise PortSpecError(token, "Invalid port range")
        lo = max(start, MIN_PORT)
        hi = min(end, MAX_PORT)
        if lo > hi:
            raise PortSpecError(token, "Port range is out of range (1-65535)")
        return list(range(lo, hi + 1))

    port = _to_int(token, token)
    if port < MIN_PORT or port > MAX_PORT:
        raise PortSpecError(token, "Port is out of range (1-65535)")
    return [port]


def expand_ports(specs: Iterable[str]) -> List[int]:
    """
    Expands every token in order. Bad tokens are logged and skipped;
    duplicates from overlapping tokens are kept.
    """
    ports: List[int] = []
    for token in specs:
        try:
            ports.extend(parse_token(token))
        except PortSpecError as e:
            logger.warning("%s", e)
    return ports
