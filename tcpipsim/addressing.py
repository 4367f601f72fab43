"""IPv4 addressing helpers, protocol constants and the IP header."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass

# Values carried in the ethernet type field and in protocol fields.
ARP_BROAD_REQ = 1
ARP_REPLY = 2
ARP_MSG = 806
BROADCAST_MAC = 0xFFFFFFFFFFFF
ETH_IP = 0x0800
ICMP_PRO = 1
ICMP_ECHO_REQ = 8
ICMP_ECHO_REP = 0
MTCP = 20
USERAPP1 = 21
VLAN_8021Q_PROTO = 0x8100
IP_IN_IP = 4

MAX_NXT_HOPS = 4

MAC_SIZE = 6
IP_ADDR_STR_SIZE = 16
IP_HDR_SIZE = 20

_IP_HDR_STRUCT = struct.Struct("!BBHHHBBHII")


def ip_to_int(ip_addr: str) -> int:
    """Convert a dotted IPv4 address to a host-order integer."""
    return int(ipaddress.IPv4Address(ip_addr))


def int_to_ip(value: int) -> str:
    """Convert a host-order integer to a dotted IPv4 address."""
    return str(ipaddress.IPv4Address(value))


def _check_mask(mask: int) -> None:
    if not 0 <= mask <= 32:
        raise ValueError(f"invalid mask length {mask}")


def apply_mask(prefix: str, mask: int) -> str:
    """Return the subnet of ``prefix`` under a mask of ``mask`` bits.

    For example 122.1.1.1 with mask 24 gives 122.1.1.0.
    """
    _check_mask(mask)
    value = ip_to_int(prefix)
    if mask == 32:
        return int_to_ip(value)
    subnet_mask = (0xFFFFFFFF << (32 - mask)) & 0xFFFFFFFF
    return int_to_ip(value & subnet_mask)


def is_same_subnet(ip_addr: str, mask: int, ip_to_compare: str) -> bool:
    """Tell whether both addresses lie in the same subnet of ``mask`` bits."""
    return apply_mask(ip_addr, mask) == apply_mask(ip_to_compare, mask)


def broadcast_mac() -> bytes:
    """Return the all-ones ethernet broadcast address."""
    return b"\xff" * MAC_SIZE


def is_broadcast_mac(mac: bytes) -> bool:
    """Tell whether ``mac`` is the broadcast address."""
    return len(mac) >= MAC_SIZE and all(b == 0xFF for b in mac[:MAC_SIZE])


def format_mac(mac: bytes) -> str:
    """Format a MAC address as colon separated hex octets."""
    return ":".join(f"{b:x}" for b in mac[:MAC_SIZE])


@dataclass
class IpHeader:
    """IPv4 header. ``hdr_len`` and ``total_length`` count 4-byte words."""

    version: int = 4
    hdr_len: int = 5
    tos: int = 0
    total_length: int = 0
    identification: int = 0
    unused_flag: int = 0
    df_flag: int = 1
    more_flag: int = 0
    frag_offset: int = 0
    ttl: int = 64
    protocol: int = 0
    checksum: int = 0
    src_ip: int = 0
    dst_ip: int = 0

    @property
    def header_length_bytes(self) -> int:
        return self.hdr_len * 4

    @property
    def total_length_bytes(self) -> int:
        return self.total_length * 4

    @property
    def payload_size(self) -> int:
        return self.total_length_bytes - self.header_length_bytes

    def to_bytes(self) -> bytes:
        """Encode the header in network byte order."""
        flags = (
            ((self.unused_flag & 1) << 15)
            | ((self.df_flag & 1) << 14)
            | ((self.more_flag & 1) << 13)
            | (self.frag_offset & 0x1FFF)
        )
        return _IP_HDR_STRUCT.pack(
            ((self.version & 0xF) << 4) | (self.hdr_len & 0xF),
            self.tos & 0xFF,
            self.total_length & 0xFFFF,
            self.identification & 0xFFFF,
            flags,
            self.ttl & 0xFF,
            self.protocol & 0xFF,
            self.checksum & 0xFFFF,
            self.src_ip & 0xFFFFFFFF,
            self.dst_ip & 0xFFFFFFFF,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "IpHeader":
        """Decode a header from the first 20 bytes of ``data``."""
        if len(data) < IP_HDR_SIZE:
            raise ValueError(f"IP header needs {IP_HDR_SIZE} bytes, got {len(data)}")
        (ver_len, tos, total_length, identification, flags, ttl, protocol,
         checksum, src_ip, dst_ip) = _IP_HDR_STRUCT.unpack_from(data)
        return cls(
            version=ver_len >> 4,
            hdr_len=ver_len & 0xF,
            tos=tos,
            total_length=total_length,
            identification=identification,
            unused_flag=(flags >> 15) & 1,
            df_flag=(flags >> 14) & 1,
            more_flag=(flags >> 13) & 1,
            frag_offset=flags & 0x1FFF,
            ttl=ttl,
            protocol=protocol,
            checksum=checksum,
            src_ip=src_ip,
            dst_ip=dst_ip,
        )