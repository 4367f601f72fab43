"""Generator of test frames injected into a simulated node's UDP port."""

from __future__ import annotations

import argparse
import itertools
import socket
import time
from typing import List, Optional

from tcpipsim.addressing import ETH_IP, ICMP_PRO, IpHeader, broadcast_mac, ip_to_int
from tcpipsim.comm import FIRST_UDP_PORT, LOOPBACK
from tcpipsim.frames import EthernetFrame
from tcpipsim.graph import IF_NAME_SIZE

INGRESS_INTF_NAME = "eth0/7"
DEST_IP_ADDR = "122.1.1.3"
SRC_NODE_UDP_PORT_NO = FIRST_UDP_PORT


def build_packet(if_name: str = INGRESS_INTF_NAME, dst_ip: str = DEST_IP_ADDR) -> bytes:
    """Build a datagram carrying an ICMP IP packet to ``dst_ip``.

    The datagram starts with the ingress interface name padded to 16 bytes,
    followed by a broadcast ethernet frame holding a bare IP header.
    """
    header = IpHeader(protocol=ICMP_PRO, dst_ip=ip_to_int(dst_ip))
    frame = EthernetFrame(
        dst_mac=broadcast_mac(),
        src_mac=broadcast_mac(),
        ethertype=ETH_IP,
        payload=header.to_bytes(),
        fcs=0,
    )
    name = if_name.encode()[: IF_NAME_SIZE - 1].ljust(IF_NAME_SIZE, b"\0")
    return name + frame.to_bytes()


def main(argv: Optional[List[str]] = None) -> int:
    """Send the test datagram repeatedly to a node's UDP port."""
    parser = argparse.ArgumentParser(
        prog="tcpipsim-pktgen", description="Inject ICMP frames into a simulated node."
    )
    parser.add_argument("--port", type=int, default=SRC_NODE_UDP_PORT_NO,
                        help="UDP port of the receiving node")
    parser.add_argument("--if-name", default=INGRESS_INTF_NAME,
                        help="interface of the node the frame arrives on")
    parser.add_argument("--dst-ip", default=DEST_IP_ADDR, help="destination IP address")
    parser.add_argument("--interval", type=float, default=2.0,
                        help="seconds between packets")
    parser.add_argument("--count", type=int, default=None,
                        help="number of packets to send (default: forever)")
    args = parser.parse_args(argv)
    if args.count is not None and args.count < 0:
        parser.error("--count must not be negative")

    datagram = build_packet(args.if_name, args.dst_ip)
    numbers = itertools.count(1) if args.count is None else range(1, args.count + 1)
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
        try:
            for number in numbers:
                if number > 1:
                    time.sleep(args.interval)
                sent = sock.sendto(datagram, (LOOPBACK, args.port))
                print(f"No. of Bytes sent - {sent}, Pkt Number {number}")
        except KeyboardInterrupt:
            pass
    return 0