from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Iterable, List

from .errors import ResolutionError
from .models import ResolvedAddress

logger = logging.getLogger(__name__)

# largest CIDR block expanded into targets (a /16, or a /112 for IPv6)
MAX_NETWORK_ADDRESSES = 65536


def format_address(ip: str) -> str:
    """
    Dotted form for IPv4, bracketed literal for IPv6 so that
    "ADDRESS:PORT" stays unambiguous.
    """
    addr = ipaddress.ip_address(ip.split("%", 1)[0])
    if addr.version == 6:
        return f"[{addr}]"
    return str(addr)


def resolve(target: str) -> List[ResolvedAddress]:
    """
    Supports:
      - Single IP: "172.20.0.10", "::1" or "[::1]"
      - CIDR: "172.20.0.0/30"
      - Hostname: "webapp" (every address the lookup returns)
    """
    target = target.strip()
    if not target:
        raise ResolutionError(target, "empty target")

    literal = target[1:-1] if target.startswith("[") and target.endswith("]") else target

    # Try IP or CIDR first
    try:
        ip = ipaddress.ip_address(literal)
        return [ResolvedAddress(format_address(str(ip)), target)]
    except ValueError:
        pass

    if "/" in literal:
        try:
            net = ipaddress.ip_network(literal, strict=False)
        except ValueError as e:
            raise ResolutionError(target, e) from e
        if net.num_addresses > MAX_NETWORK_ADDRESSES:
            raise ResolutionError(
                target,
                f"network too large ({net.num_addresses} addresses, max {MAX_NETWORK_ADDRESSES})",
            )
        # hosts() excludes network + broadcast (good for /24 style)
        hosts = [str(ip) for ip in net.hosts()]
        if not hosts:
            hosts = [str(ip) for ip in net]
        return [ResolvedAddress(format_address(h), target) for h in hosts]

    # Fallback: hostname
    try:
        infos = socket.getaddrinfo(literal, None, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError, OSError) as e:
        raise ResolutionError(target, e) from e

    seen = set()
    resolved: List[ResolvedAddress] = []
    for family, _, _, _, sockaddr in infos:
        if family not in (socket.AF_INET, socket.AF_INET6):
            continue
        addr = format_address(sockaddr[0])
        if addr in seen:
            continue
        seen.add(addr)
        resolved.append(ResolvedAddress(addr, target))

    if not resolved:
        raise ResolutionError(target, "no valid IP found")
    return resolved


def resolve_all(targets: Iterable[str]) -> List[ResolvedAddress]:
    addresses: List[ResolvedAddress] = []
    for target in targets:
        try:
            found = resolve(target)
        except ResolutionError as e:
            logger.error("%s", e)
            continue
        logger.debug("%s -> %s", target, ", ".join(a.address for a in found))
        addresses.extend(found)
    return addresses
