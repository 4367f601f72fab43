"""Ping utilities of the application layer."""

from __future__ import annotations

import logging

from tcpipsim.addressing import ICMP_PRO, IP_HDR_SIZE, IP_IN_IP, IpHeader, ip_to_int
from tcpipsim.graph import Node
from tcpipsim.stack import demote_packet_to_layer3

_log = logging.getLogger(__name__)


def _loopback_int(node: Node) -> int:
    return ip_to_int(node.lb_addr) if node.is_lb_addr_config else 0


def ping(node: Node, dst_ip_addr: str) -> bool:
    """Send an ICMP packet from ``node`` to ``dst_ip_addr``.

    Raises LookupError when the node has no route. Returns True when the
    packet went out at once.
    """
    _log.info("Src node - %s, Ping IP - %s", node.name, dst_ip_addr)
    return demote_packet_to_layer3(node, None, ICMP_PRO, ip_to_int(dst_ip_addr))


def ero_ping(node: Node, dst_ip_addr: str, ero_ip_addr: str) -> bool:
    """Ping ``dst_ip_addr`` through ``ero_ip_addr`` by IP-in-IP encapsulation.

    The inner ICMP header is carried as the payload of a packet addressed to
    the explicit route object.
    """
    inner = IpHeader(
        protocol=ICMP_PRO,
        total_length=IP_HDR_SIZE // 4,
        src_ip=_loopback_int(node),
        dst_ip=ip_to_int(dst_ip_addr),
    )
    return demote_packet_to_layer3(node, inner.to_bytes(), IP_IN_IP, ip_to_int(ero_ip_addr))