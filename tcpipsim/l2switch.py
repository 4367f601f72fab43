"""Layer 2 switching: MAC learning, VLAN aware forwarding and flooding."""

from __future__ import annotations

from typing import Union

from tcpipsim.addressing import is_broadcast_mac
from tcpipsim.comm import send_pkt_out
from tcpipsim.frames import EthernetFrame, untag_frame
from tcpipsim.graph import Interface, L2Mode, Node


def _as_frame(frame: Union[EthernetFrame, bytes]) -> EthernetFrame:
    return frame if isinstance(frame, EthernetFrame) else EthernetFrame.from_bytes(frame)


def l2_switch_send_pkt_out(frame: EthernetFrame, oif: Interface) -> bool:
    """Send ``frame`` out of an L2 interface if its VLAN rules allow it."""
    if oif.is_ipaddr_config:
        raise ValueError(f"interface {oif.if_name} is in L3 mode")
    if oif.l2_mode is L2Mode.ACCESS:
        intf_vlan_id = oif.access_vlan_id()
        if not frame.is_vlan_tagged:
            if intf_vlan_id:
                return False
            send_pkt_out(frame, oif)
            return True
        if intf_vlan_id and intf_vlan_id == frame.vlan_id:
            send_pkt_out(untag_frame(frame), oif)
            return True
        return False
    if oif.l2_mode is L2Mode.TRUNK:
        pkt_vlan_id = frame.vlan_id
        if pkt_vlan_id and oif.is_trunk_vlan_enabled(pkt_vlan_id):
            send_pkt_out(frame, oif)
            return True
        return False
    return False


def l2_switch_flood_pkt_out(node: Node, exempted_intf: Interface, frame: EthernetFrame) -> int:
    """Send ``frame`` out of every L2 interface but ``exempted_intf``.

    Returns how many interfaces the frame went out of.
    """
    return sum(
        l2_switch_send_pkt_out(frame, oif)
        for oif in node.interfaces
        if oif is not exempted_intf and not oif.is_ipaddr_config
    )


def l2_switch_forward_frame(node: Node, recv_intf: Interface, frame: EthernetFrame) -> int:
    """Forward by the MAC table, flooding broadcast and unknown destinations.

    Returns how many interfaces the frame went out of.
    """
    if is_broadcast_mac(frame.dst_mac):
        return l2_switch_flood_pkt_out(node, recv_intf, frame)
    entry = node.mac_table.lookup(frame.dst_mac)
    if entry is None:
        return l2_switch_flood_pkt_out(node, recv_intf, frame)
    oif = node.interface_by_name(entry.oif_name)
    if oif is None:
        return 0
    return int(l2_switch_send_pkt_out(frame, oif))


def l2_switch_recv_frame(interface: Interface, frame: Union[EthernetFrame, bytes]) -> int:
    """Learn the frame's source MAC and forward it; return interfaces sent on."""
    eth = _as_frame(frame)
    node = interface.node
    node.mac_table.learn(eth.src_mac, interface.if_name)
    return l2_switch_forward_frame(node, interface, eth)