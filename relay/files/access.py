"""Network-origin access policy.

An origin is allowed when the allow-all override is on, or when its
IPv4 address falls inside one of the configured ``a.b.c.d/n`` ranges.
"""
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from relay.shared.config import Settings

UNKNOWN_ORIGIN = "unknown"
_MAPPED_PREFIX = "::ffff:"
_OCTET_RE = re.compile(r"[0-9]{1,3}")
_BITS_RE = re.compile(r"[0-9]{1,2}")


def ipv4_to_int(ip: str) -> Optional[int]:
    """Dotted quad -> 32-bit int, or None if ``ip`` is not one."""
    if ip.lower().startswith(_MAPPED_PREFIX):
        ip = ip[len(_MAPPED_PREFIX):]
    parts = ip.split(".")
    if len(parts) != 4:
        return None
    n = 0
    for p in parts:
        if not _OCTET_RE.fullmatch(p) or int(p) > 255:
            return None
        n = (n << 8) | int(p)
    return n


def prefix_mask(bits: int) -> int:
    return (0xFFFFFFFF << (32 - bits)) & 0xFFFFFFFF


@dataclass(frozen=True)
class AddressRange:
    base: int
    bits: int

    @classmethod
    def parse(cls, cidr: str) -> "AddressRange":
        addr, sep, bits = cidr.strip().partition("/")
        base = ipv4_to_int(addr)
        if base is None or not sep or not _BITS_RE.fullmatch(bits) or not 0 <= int(bits) <= 32:
            raise ValueError(f"Invalid address range: {cidr!r}")
        return cls(base=base, bits=int(bits))

    def contains(self, ip: int) -> bool:
        mask = prefix_mask(self.bits)
        return (ip & mask) == (self.base & mask)


@dataclass(frozen=True)
class AccessPolicy:
    ranges: tuple[AddressRange, ...] = ()
    allow_all: bool = False

    @classmethod
    def from_settings(cls, s: Settings) -> "AccessPolicy":
        return cls(
            ranges=tuple(AddressRange.parse(r) for r in s.ALLOWED_IP_RANGES),
            allow_all=s.ALLOW_ALL_IPS,
        )

    def allowed(self, origin: str) -> bool:
        if self.allow_all:
            return True
        ip = ipv4_to_int(origin or UNKNOWN_ORIGIN)
        if ip is None:
            return False
        return any(r.contains(ip) for r in self.ranges)


def resolve_origin(headers: Mapping[str, str], peer: Optional[str], trust_proxy: bool = True) -> str:
    """
    Pick the most specific origin signal:
    X-Forwarded-For (first entry) > X-Real-IP > transport peer > "unknown".
    Proxy headers are ignored when ``trust_proxy`` is off.
    """
    if trust_proxy:
        forwarded = headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = (headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip
    return peer or UNKNOWN_ORIGIN
