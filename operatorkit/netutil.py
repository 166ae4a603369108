"""IP address helpers."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable

_NIL = "<nil>"


def _parse(ip: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(ip)
    except ValueError:
        return None


def _sort_key(addr: ipaddress.IPv4Address | ipaddress.IPv6Address | None) -> bytes:
    # Addresses compare in their 16-byte form, IPv4 as IPv4-mapped IPv6.
    if addr is None:
        return b""
    if isinstance(addr, ipaddress.IPv4Address):
        return bytes(10) + b"\xff\xff" + addr.packed
    return addr.packed


def _format(addr: ipaddress.IPv4Address | ipaddress.IPv6Address | None) -> str:
    if addr is None:
        return _NIL
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return str(addr.ipv4_mapped)
    return addr.compressed


def sort_ips(ips: Iterable[str]) -> list[str]:
    """Return the addresses sorted by their binary value, in canonical form.

    Strings that are not IP addresses sort first and come back as ``<nil>``.
    """
    parsed = sorted((_parse(ip) for ip in ips), key=_sort_key)
    return [_format(addr) for addr in parsed]