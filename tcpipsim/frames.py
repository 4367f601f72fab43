"""Ethernet frames, 802.1Q headers and ARP packets."""

from __future__ import annotations

import dataclasses
import struct
from dataclasses import dataclass, field
from typing import Optional

from tcpipsim.addressing import (
    ARP_BROAD_REQ,
    ARP_MSG,
    ETH_IP,
    MAC_SIZE,
    VLAN_8021Q_PROTO,
    format_mac,
    int_to_ip,
)

MAX_PAYLOAD_SIZE = 248
FCS_SIZE = 4
VLAN_HDR_SIZE = 4
ETH_HDR_SIZE_EXCL_PAYLOAD_FCS = 2 * MAC_SIZE + 2
ETH_HDR_SIZE_EXCL_PAYLOAD = ETH_HDR_SIZE_EXCL_PAYLOAD_FCS + FCS_SIZE
VLAN_ETH_HDR_SIZE_EXCL_PAYLOAD = ETH_HDR_SIZE_EXCL_PAYLOAD + VLAN_HDR_SIZE
VLAN_ETH_HDR_SIZE_EXCL_PAYLOAD_FCS = VLAN_ETH_HDR_SIZE_EXCL_PAYLOAD - FCS_SIZE

_ARP_STRUCT = struct.Struct("!HHBBH6sI6sI")
ARP_PACKET_SIZE = _ARP_STRUCT.size


def _mac(value: bytes, what: str) -> bytes:
    mac = bytes(value)
    if len(mac) != MAC_SIZE:
        raise ValueError(f"{what} must be {MAC_SIZE} bytes, got {len(mac)}")
    return mac


@dataclass
class ArpPacket:
    """ARP request or reply carried as an ethernet payload."""

    op_code: int = ARP_BROAD_REQ
    src_mac: bytes = bytes(MAC_SIZE)
    src_ip: int = 0
    dst_mac: bytes = bytes(MAC_SIZE)
    dst_ip: int = 0
    hw_type: int = 1
    proto_type: int = ETH_IP
    hw_addr_len: int = MAC_SIZE
    proto_addr_len: int = 4

    def __post_init__(self) -> None:
        self.src_mac = _mac(self.src_mac, "src_mac")
        self.dst_mac = _mac(self.dst_mac, "dst_mac")

    def to_bytes(self) -> bytes:
        return _ARP_STRUCT.pack(
            self.hw_type, self.proto_type, self.hw_addr_len, self.proto_addr_len,
            self.op_code, self.src_mac, self.src_ip, self.dst_mac, self.dst_ip,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "ArpPacket":
        if len(data) < ARP_PACKET_SIZE:
            raise ValueError(f"ARP packet needs {ARP_PACKET_SIZE} bytes, got {len(data)}")
        (hw_type, proto_type, hw_addr_len, proto_addr_len, op_code,
         src_mac, src_ip, dst_mac, dst_ip) = _ARP_STRUCT.unpack_from(data)
        return cls(
            op_code=op_code, src_mac=src_mac, src_ip=src_ip, dst_mac=dst_mac,
            dst_ip=dst_ip, hw_type=hw_type, proto_type=proto_type,
            hw_addr_len=hw_addr_len, proto_addr_len=proto_addr_len,
        )


@dataclass(frozen=True)
class VlanHeader:
    """802.1Q tag: TPID followed by priority, drop-eligible bit and VLAN id."""

    vid: int = 0
    pcp: int = 0
    dei: int = 0
    tpid: int = VLAN_8021Q_PROTO

    def __post_init__(self) -> None:
        if not 0 <= self.vid <= 0xFFF:
            raise ValueError(f"VLAN id {self.vid} out of range")
        if not 0 <= self.pcp <= 7:
            raise ValueError(f"priority {self.pcp} out of range")
        if self.dei not in (0, 1):
            raise ValueError(f"DEI bit {self.dei} out of range")

    def to_bytes(self) -> bytes:
        tci = (self.pcp << 13) | (self.dei << 12) | self.vid
        return struct.pack("!HH", self.tpid, tci)

    @classmethod
    def from_bytes(cls, data: bytes) -> "VlanHeader":
        if len(data) < VLAN_HDR_SIZE:
            raise ValueError(f"VLAN header needs {VLAN_HDR_SIZE} bytes, got {len(data)}")
        tpid, tci = struct.unpack_from("!HH", data)
        return cls(vid=tci & 0xFFF, pcp=tci >> 13, dei=(tci >> 12) & 1, tpid=tpid)


@dataclass
class EthernetFrame:
    """Ethernet frame, optionally carrying an 802.1Q tag."""

    dst_mac: bytes
    src_mac: bytes
    ethertype: int
    payload: bytes = b""
    fcs: int = 0
    vlan: Optional[VlanHeader] = field(default=None)

    def __post_init__(self) -> None:
        self.dst_mac = _mac(self.dst_mac, "dst_mac")
        self.src_mac = _mac(self.src_mac, "src_mac")
        self.payload = bytes(self.payload)
        if len(self.payload) > MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"payload of {len(self.payload)} bytes exceeds {MAX_PAYLOAD_SIZE}"
            )

    @property
    def is_vlan_tagged(self) -> bool:
        return self.vlan is not None

    @property
    def vlan_id(self) -> int:
        """The tagged VLAN id, or 0 for an untagged frame."""
        return self.vlan.vid if self.vlan else 0

    def header_size(self) -> int:
        """Size of everything but the payload, FCS included."""
        return VLAN_ETH_HDR_SIZE_EXCL_PAYLOAD if self.vlan else ETH_HDR_SIZE_EXCL_PAYLOAD

    def __len__(self) -> int:
        return self.header_size() + len(self.payload)

    def to_bytes(self) -> bytes:
        parts = [self.dst_mac, self.src_mac]
        if self.vlan:
            parts.append(self.vlan.to_bytes())
        parts.append(struct.pack("!H", self.ethertype))
        parts.append(self.payload)
        parts.append(struct.pack("!I", self.fcs & 0xFFFFFFFF))
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "EthernetFrame":
        data = bytes(data)
        if len(data) < ETH_HDR_SIZE_EXCL_PAYLOAD:
            raise ValueError(f"frame of {len(data)} bytes is too short")
        dst_mac = data[0:MAC_SIZE]
        src_mac = data[MAC_SIZE:2 * MAC_SIZE]
        offset = 2 * MAC_SIZE
        (ethertype,) = struct.unpack_from("!H", data, offset)
        vlan = None
        if ethertype == VLAN_8021Q_PROTO:
            if len(data) < VLAN_ETH_HDR_SIZE_EXCL_PAYLOAD:
                raise ValueError(f"tagged frame of {len(data)} bytes is too short")
            vlan = VlanHeader.from_bytes(data[offset:offset + VLAN_HDR_SIZE])
            offset += VLAN_HDR_SIZE
            (ethertype,) = struct.unpack_from("!H", data, offset)
        offset += 2
        payload = data[offset:len(data) - FCS_SIZE]
        (fcs,) = struct.unpack_from("!I", data, len(data) - FCS_SIZE)
        return cls(dst_mac=dst_mac, src_mac=src_mac, ethertype=ethertype,
                   payload=payload, fcs=fcs, vlan=vlan)


def tag_frame(frame: EthernetFrame, vlan_id: int) -> EthernetFrame:
    """Return the frame tagged with ``vlan_id``, replacing any existing tag id."""
    if frame.vlan:
        return dataclasses.replace(frame, vlan=dataclasses.replace(frame.vlan, vid=vlan_id))
    return dataclasses.replace(frame, vlan=VlanHeader(vid=vlan_id))


def untag_frame(frame: EthernetFrame) -> EthernetFrame:
    """Return the frame without its 802.1Q tag."""
    if not frame.vlan:
        return frame
    return dataclasses.replace(frame, vlan=None)


def dump_eth_frame(frame: EthernetFrame, msg: str) -> str:
    """Describe a frame, decoding an ARP payload, as printable text."""
    lines = [
        msg,
        f"Destination MAC : {format_mac(frame.dst_mac)}",
        f"Source MAC      : {format_mac(frame.src_mac)}",
        f"Frame type      : {frame.ethertype}",
    ]
    if frame.ethertype == ARP_MSG:
        arp = ArpPacket.from_bytes(frame.payload)
        lines += [
            f"\tHwType               : {arp.hw_type}",
            f"\tProtoType            : {arp.proto_type}",
            f"\tHw Address Length    : {arp.hw_addr_len}",
            f"\tProto Address Length : {arp.proto_addr_len}",
            f"\tARP Request/Response : {arp.op_code}",
            f"\tSource MAC           : {format_mac(arp.src_mac)}",
            f"\tSource IP            : {int_to_ip(arp.src_ip)}",
            f"\tDestination MAC      : {format_mac(arp.dst_mac)}",
            f"\tDestination IP       : {int_to_ip(arp.dst_ip)}",
        ]
    lines.append(f"Ethernet FCS/CRC: {frame.fcs:x}")
    return "\n".join(lines) + "\n"