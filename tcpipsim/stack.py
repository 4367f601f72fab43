"""Packet flow through the data link and network layers of a node."""

from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

from tcpipsim.addressing import (
    ARP_BROAD_REQ,
    ARP_MSG,
    ARP_REPLY,
    ETH_IP,
    ICMP_PRO,
    IP_HDR_SIZE,
    IP_IN_IP,
    MAC_SIZE,
    IpHeader,
    broadcast_mac,
    int_to_ip,
    ip_to_int,
    is_broadcast_mac,
)
from tcpipsim.arp import ArpEntry, PendingPacket
from tcpipsim.comm import send_pkt_out
from tcpipsim.frames import (
    MAX_PAYLOAD_SIZE,
    ArpPacket,
    EthernetFrame,
    dump_eth_frame,
    tag_frame,
)
from tcpipsim.graph import Interface, L2Mode, Node
from tcpipsim.l2switch import l2_switch_recv_frame

IpAddress = Union[int, str]

_log = logging.getLogger(__name__)


def _ip_int(value: IpAddress) -> int:
    return ip_to_int(value) if isinstance(value, str) else int(value)


def _as_frame(data: Union[EthernetFrame, bytes]) -> EthernetFrame:
    return data if isinstance(data, EthernetFrame) else EthernetFrame.from_bytes(data)


def qualify_frame_on_interface(interface: Interface, frame: EthernetFrame) -> Tuple[bool, int]:
    """Decide whether ``interface`` accepts ``frame``.

    Returns whether the frame is accepted and the VLAN id it must be tagged
    with on entry (0 when no tagging is needed).
    """
    tagged = frame.is_vlan_tagged
    if not interface.is_ipaddr_config:
        mode = interface.l2_mode
        if mode is L2Mode.UNKNOWN:
            _log.info("receiving interface %s neither in L2 nor L3 mode", interface.if_name)
            return False, 0
        if mode is L2Mode.ACCESS:
            intf_vlan_id = interface.access_vlan_id()
            if not intf_vlan_id:
                _log.info("access interface %s has no vlan id", interface.if_name)
                return False, 0
            if not tagged:
                return True, intf_vlan_id
            return frame.vlan_id == intf_vlan_id, 0
        if not tagged:
            _log.info("trunk interface %s received an untagged frame", interface.if_name)
            return False, 0
        return interface.is_trunk_vlan_enabled(frame.vlan_id), 0
    if tagged:
        _log.info("L3 interface %s received a tagged frame", interface.if_name)
        return False, 0
    if frame.dst_mac == interface.mac:
        return True, 0
    return is_broadcast_mac(frame.dst_mac), 0


def layer2_frame_recv(node: Node, interface: Interface,
                      data: Union[EthernetFrame, bytes]) -> bool:
    """Entry point of a frame received on ``interface``; False if it is rejected."""
    frame = _as_frame(data)
    accepted, vlan_to_tag = qualify_frame_on_interface(interface, frame)
    if not accepted:
        _log.info("L2 frame rejected on node %s", node.name)
        return False
    _log.debug("L2 frame accepted on node %s", node.name)
    if interface.is_ipaddr_config:
        _promote_pkt_to_layer2(node, interface, frame)
        return True
    if interface.l2_mode in (L2Mode.ACCESS, L2Mode.TRUNK):
        if vlan_to_tag:
            frame = tag_frame(frame, vlan_to_tag)
        l2_switch_recv_frame(interface, frame)
        return True
    return False


def _promote_pkt_to_layer2(node: Node, iif: Interface, frame: EthernetFrame) -> None:
    if frame.ethertype == ARP_MSG:
        arp = ArpPacket.from_bytes(frame.payload)
        if arp.op_code == ARP_BROAD_REQ:
            _process_arp_broadcast_request(node, iif, frame, arp)
        elif arp.op_code == ARP_REPLY:
            _log.info("ARP reply received on interface %s of node %s", iif.if_name, node.name)
            node.arp_table.update_from_reply(arp, iif)
    elif frame.ethertype == ETH_IP:
        promote_pkt_to_layer3(node, iif, frame.payload, frame.ethertype)


def _process_arp_broadcast_request(node: Node, iif: Interface, frame: EthernetFrame,
                                   arp: ArpPacket) -> bool:
    _log.debug("%s", dump_eth_frame(frame, "Received Message"))
    target = int_to_ip(arp.dst_ip)
    if iif.ip_addr != target:
        _log.info("ARP request dropped at node %s: %s does not match interface IP %s",
                  node.name, target, iif.ip_addr)
        return False
    _send_arp_reply(arp, iif)
    return True


def _send_arp_reply(arp_in: ArpPacket, oif: Interface) -> None:
    reply = ArpPacket(
        op_code=ARP_REPLY,
        src_mac=oif.mac,
        src_ip=ip_to_int(oif.ip_addr),
        dst_mac=arp_in.src_mac,
        dst_ip=arp_in.src_ip,
    )
    frame = EthernetFrame(arp_in.src_mac, oif.mac, ARP_MSG, reply.to_bytes())
    send_pkt_out(frame, oif)


def send_arp_broadcast_request(node: Node, oif: Optional[Interface],
                               ip_addr: str) -> EthernetFrame:
    """Broadcast an ARP request for ``ip_addr`` and return the frame sent.

    Without ``oif`` the interface whose subnet holds ``ip_addr`` is used.
    Raises LookupError when there is none, ValueError when the address is
    the interface's own or the interface has no IP address.
    """
    if oif is None:
        oif = node.matching_subnet_interface(ip_addr)
        if oif is None:
            raise LookupError(f"no matching interface for IP address {ip_addr} in node {node.name}")
        if oif.ip_addr == ip_addr:
            raise ValueError(f"IP address {ip_addr} is local to node {node.name}")
    if not oif.is_ipaddr_config:
        raise ValueError(f"interface {oif.if_name} has no IP address")
    arp = ArpPacket(
        op_code=ARP_BROAD_REQ,
        src_mac=oif.mac,
        src_ip=ip_to_int(oif.ip_addr),
        dst_mac=bytes(MAC_SIZE),
        dst_ip=ip_to_int(ip_addr),
    )
    frame = EthernetFrame(broadcast_mac(), oif.mac, ARP_MSG, arp.to_bytes())
    _log.debug("%s", dump_eth_frame(frame, "Sent Message"))
    send_pkt_out(frame, oif)
    return frame


def _pending_arp_processing(node: Node, oif: Interface, entry: ArpEntry,
                            pending: PendingPacket) -> None:
    frame = EthernetFrame.from_bytes(pending.pkt)
    frame.dst_mac = entry.mac
    frame.src_mac = oif.mac
    frame.fcs = 0
    send_pkt_out(frame, oif)


def _resolve_and_send(node: Node, oif: Interface, next_hop: str,
                      frame: EthernetFrame) -> bool:
    table = node.arp_table
    entry = table.lookup(next_hop)
    if entry is None:
        entry = table.create_sane_entry(next_hop)
        table.add_pending(entry, _pending_arp_processing, frame.to_bytes())
        send_arp_broadcast_request(node, oif, next_hop)
        return False
    if entry.is_sane:
        table.add_pending(entry, _pending_arp_processing, frame.to_bytes())
        return False
    frame.dst_mac = entry.mac
    frame.src_mac = oif.mac
    frame.fcs = 0
    send_pkt_out(frame, oif)
    return True


def _l2_forward_ip_packet(node: Node, next_hop_ip: int, outgoing_intf: Optional[str],
                          frame: EthernetFrame) -> bool:
    next_hop = int_to_ip(next_hop_ip)
    if outgoing_intf:
        oif = node.interface_by_name(outgoing_intf)
        if oif is None:
            raise LookupError(f"node {node.name} has no interface {outgoing_intf}")
        return _resolve_and_send(node, oif, next_hop, frame)
    if is_layer3_local_delivery(node, next_hop_ip):
        promote_pkt_to_layer3(node, None, frame.payload, frame.ethertype)
        return False
    oif = node.matching_subnet_interface(next_hop)
    if oif is None:
        raise LookupError(f"local subnet for IP {next_hop} not found in node {node.name}")
    return _resolve_and_send(node, oif, next_hop, frame)


def demote_pkt_to_layer2(node: Node, next_hop_ip: IpAddress, outgoing_intf: Optional[str],
                         pkt: bytes, protocol_number: int) -> bool:
    """Wrap an IP packet in a frame and send it towards ``next_hop_ip``.

    Returns True when the frame went out at once, False when it waits for
    ARP resolution, was delivered locally, or the protocol is not IP.
    """
    if protocol_number != ETH_IP:
        return False
    payload = bytes(pkt)
    if len(payload) >= MAX_PAYLOAD_SIZE:
        raise ValueError(f"packet of {len(payload)} bytes exceeds the frame payload")
    frame = EthernetFrame(bytes(MAC_SIZE), bytes(MAC_SIZE), ETH_IP, payload)
    return _l2_forward_ip_packet(node, _ip_int(next_hop_ip), outgoing_intf, frame)


def is_layer3_local_delivery(node: Node, dst_ip: IpAddress) -> bool:
    """Tell whether ``dst_ip`` is the node's loopback or one of its interface addresses."""
    dst = int_to_ip(_ip_int(dst_ip))
    if node.is_lb_addr_config and node.lb_addr == dst:
        return True
    return any(i.is_ipaddr_config and i.ip_addr == dst for i in node.interfaces)


def demote_packet_to_layer3(node: Node, pkt: Optional[bytes], protocol_number: int,
                            dest_ip_address: IpAddress) -> bool:
    """Build an IP packet around ``pkt`` and route it to ``dest_ip_address``.

    Raises LookupError when the node has no route. Returns what
    demote_pkt_to_layer2 returns.
    """
    dest = _ip_int(dest_ip_address)
    payload = bytes(pkt or b"")
    header = IpHeader(
        protocol=protocol_number,
        src_ip=ip_to_int(node.lb_addr) if node.is_lb_addr_config else 0,
        dst_ip=dest,
    )
    header.total_length = header.hdr_len + -(-len(payload) // 4)
    route = node.rt_table.lookup_lpm(dest)
    if route is None:
        raise LookupError(f"no L3 route found on node {node.name} for {int_to_ip(dest)}")
    packet = (header.to_bytes() + payload).ljust(header.total_length_bytes, b"\0")
    if route.is_direct:
        return demote_pkt_to_layer2(node, dest, None, packet, ETH_IP)
    return demote_pkt_to_layer2(node, ip_to_int(route.gw_ip), route.oif, packet, ETH_IP)


def _ip_pkt_recv_from_bottom(node: Node, pkt: bytes) -> bool:
    header = IpHeader.from_bytes(pkt)
    dst = int_to_ip(header.dst_ip)
    route = node.rt_table.lookup_lpm(header.dst_ip)
    if route is None:
        _log.info("router %s cannot route IP %s", node.name, dst)
        return False
    if route.is_direct:
        if is_layer3_local_delivery(node, header.dst_ip):
            if header.protocol == ICMP_PRO:
                print(f"IP_Address {dst}, Ping Success")
            return True
        demote_pkt_to_layer2(node, header.dst_ip, None, pkt, ETH_IP)
        return True
    header.ttl -= 1
    if header.ttl <= 0:
        _log.info("packet dropped on node %s: TTL reached 0", node.name)
        return False
    packet = header.to_bytes() + bytes(pkt[IP_HDR_SIZE:])
    demote_pkt_to_layer2(node, ip_to_int(route.gw_ip), route.oif, packet, ETH_IP)
    return True


def promote_pkt_to_layer3(node: Node, interface: Optional[Interface], pkt: bytes,
                          protocol_type: int) -> bool:
    """Hand a packet received from below to the network layer.

    Returns True when it was delivered locally or forwarded, False when it
    was dropped or is not an IP packet.
    """
    if protocol_type in (ETH_IP, IP_IN_IP):
        return _ip_pkt_recv_from_bottom(node, bytes(pkt))
    return False