"""Ready-made demonstration topologies and the simulator's command."""

from __future__ import annotations

import argparse
from typing import Callable, Dict, List, Optional

from tcpipsim.comm import init_udp_socket, start_pkt_receiver_thread
from tcpipsim.graph import Graph, L2Mode
from tcpipsim.l2config import node_set_intf_l2_mode, node_set_intf_vlan_membership
from tcpipsim.stack import layer2_frame_recv


def _start_receiver(graph: Graph):
    """Bind a UDP socket for every node and start delivering frames to them."""
    for node in graph:
        init_udp_socket(node)
    return start_pkt_receiver_thread(graph, layer2_frame_recv)


def _finish(graph: Graph, start_receiver: bool) -> Graph:
    if start_receiver:
        _start_receiver(graph)
    return graph


def build_dualswitch_topo(start_receiver: bool = False) -> Graph:
    """Six hosts on two VLANs spread over two switches joined by a trunk."""
    topo = Graph("Dual Switch Topo")
    hosts = {}
    for idx in range(1, 7):
        host = topo.add_node(f"H{idx}")
        host.set_loopback_address(f"122.1.1.{idx}")
        hosts[idx] = host
    sw1 = topo.add_node("L2SW1")
    sw2 = topo.add_node("L2SW2")

    topo.add_link(hosts[1], sw1, "eth0/1", "eth0/2", 1)
    topo.add_link(hosts[2], sw1, "eth0/3", "eth0/7", 1)
    topo.add_link(hosts[3], sw1, "eth0/4", "eth0/6", 1)
    topo.add_link(sw1, sw2, "eth0/5", "eth0/7", 1)
    topo.add_link(hosts[5], sw2, "eth0/8", "eth0/9", 1)
    topo.add_link(hosts[4], sw2, "eth0/11", "eth0/12", 1)
    topo.add_link(hosts[6], sw2, "eth0/11", "eth0/10", 1)

    hosts[1].set_interface_ip("eth0/1", "10.1.1.1", 24)
    hosts[2].set_interface_ip("eth0/3", "10.1.1.2", 24)
    hosts[3].set_interface_ip("eth0/4", "10.1.1.3", 24)
    hosts[4].set_interface_ip("eth0/11", "10.1.1.4", 24)
    hosts[5].set_interface_ip("eth0/8", "10.1.1.5", 24)
    hosts[6].set_interface_ip("eth0/11", "10.1.1.6", 24)

    switch_ports = [
        (sw1, "eth0/2", L2Mode.ACCESS, (10,)),
        (sw1, "eth0/7", L2Mode.ACCESS, (10,)),
        (sw1, "eth0/5", L2Mode.TRUNK, (10, 11)),
        (sw1, "eth0/6", L2Mode.ACCESS, (11,)),
        (sw2, "eth0/7", L2Mode.TRUNK, (10, 11)),
        (sw2, "eth0/9", L2Mode.ACCESS, (10,)),
        (sw2, "eth0/10", L2Mode.ACCESS, (10,)),
        (sw2, "eth0/12", L2Mode.ACCESS, (11,)),
    ]
    for switch, if_name, mode, vlans in switch_ports:
        node_set_intf_l2_mode(switch, if_name, mode)
        for vlan_id in vlans:
            node_set_intf_vlan_membership(switch, if_name, vlan_id)

    return _finish(topo, start_receiver)


def build_first_topo(start_receiver: bool = False) -> Graph:
    """Three routers connected in a triangle."""
    topo = Graph("Hello World Generic Graph")
    r0 = topo.add_node("R0_re")
    r1 = topo.add_node("R1_re")
    r2 = topo.add_node("R2_re")

    topo.add_link(r0, r1, "eth0/0", "eth0/1", 1)
    topo.add_link(r0, r2, "eth0/4", "eth0/5", 1)
    topo.add_link(r1, r2, "eth0/2", "eth0/3", 1)

    r0.set_loopback_address("122.1.1.0")
    r0.set_interface_ip("eth0/4", "40.1.1.1", 24)
    r0.set_interface_ip("eth0/0", "20.1.1.1", 24)

    r1.set_loopback_address("122.1.1.1")
    r1.set_interface_ip("eth0/1", "20.1.1.2", 24)
    r1.set_interface_ip("eth0/2", "30.1.1.1", 24)

    r2.set_loopback_address("122.1.1.2")
    r2.set_interface_ip("eth0/3", "30.1.1.2", 24)
    r2.set_interface_ip("eth0/5", "40.1.1.2", 24)

    return _finish(topo, start_receiver)


def build_simple_l2_switch_topo(start_receiver: bool = False) -> Graph:
    """Four hosts attached to one switch with VLAN-unaware access ports."""
    topo = Graph("Simple L2 Switch Demo graph")
    h1 = topo.add_node("H1")
    h2 = topo.add_node("H2")
    h3 = topo.add_node("H3")
    h4 = topo.add_node("H4")
    switch = topo.add_node("L2SW")

    topo.add_link(h1, switch, "eth0/5", "eth0/4", 1)
    topo.add_link(h2, switch, "eth0/8", "eth0/3", 1)
    topo.add_link(h3, switch, "eth0/6", "eth0/2", 1)
    topo.add_link(h4, switch, "eth0/7", "eth0/1", 1)

    h1.set_loopback_address("122.1.1.1")
    h1.set_interface_ip("eth0/5", "10.1.1.2", 24)
    h2.set_loopback_address("122.1.1.2")
    h2.set_interface_ip("eth0/8", "10.1.1.4", 24)
    h3.set_loopback_address("122.1.1.3")
    h3.set_interface_ip("eth0/6", "10.1.1.1", 24)
    h4.set_loopback_address("122.1.1.4")
    h4.set_interface_ip("eth0/7", "10.1.1.3", 24)

    for if_name in ("eth0/1", "eth0/2", "eth0/3", "eth0/4"):
        node_set_intf_l2_mode(switch, if_name, L2Mode.ACCESS)

    return _finish(topo, start_receiver)


def linear_3_node_topo(start_receiver: bool = False) -> Graph:
    """Three routers in a line, R1 - R2 - R3."""
    topo = Graph("3 node linerar topo")
    r1 = topo.add_node("R1")
    r2 = topo.add_node("R2")
    r3 = topo.add_node("R3")

    topo.add_link(r1, r2, "eth0/1", "eth0/2", 1)
    topo.add_link(r2, r3, "eth0/3", "eth0/4", 1)

    r1.set_loopback_address("122.1.1.1")
    r1.set_interface_ip("eth0/1", "10.1.1.1", 24)

    r2.set_loopback_address("122.1.1.2")
    r2.set_interface_ip("eth0/2", "10.1.1.2", 24)
    r2.set_interface_ip("eth0/3", "11.1.1.2", 24)

    r3.set_loopback_address("122.1.1.3")
    r3.set_interface_ip("eth0/4", "11.1.1.1", 24)

    return _finish(topo, start_receiver)


def build_square_topo(start_receiver: bool = False) -> Graph:
    """Four routers connected in a ring."""
    topo = Graph("square Topo")
    r1 = topo.add_node("R1")
    r2 = topo.add_node("R2")
    r3 = topo.add_node("R3")
    r4 = topo.add_node("R4")

    topo.add_link(r1, r2, "eth0/0", "eth0/1", 1)
    topo.add_link(r2, r3, "eth0/2", "eth0/3", 1)
    topo.add_link(r3, r4, "eth0/4", "eth0/5", 1)
    topo.add_link(r4, r1, "eth0/6", "eth0/7", 1)

    r1.set_loopback_address("122.1.1.1")
    r1.set_interface_ip("eth0/0", "10.1.1.1", 24)
    r1.set_interface_ip("eth0/7", "40.1.1.2", 24)

    r2.set_loopback_address("122.1.1.2")
    r2.set_interface_ip("eth0/1", "10.1.1.2", 24)
    r2.set_interface_ip("eth0/2", "20.1.1.1", 24)

    r3.set_loopback_address("122.1.1.3")
    r3.set_interface_ip("eth0/3", "20.1.1.2", 24)
    r3.set_interface_ip("eth0/4", "30.1.1.1", 24)

    r4.set_loopback_address("122.1.1.4")
    r4.set_interface_ip("eth0/5", "30.1.1.2", 24)
    r4.set_interface_ip("eth0/6", "40.1.1.1", 24)

    return _finish(topo, start_receiver)


TOPOLOGIES: Dict[str, Callable[[bool], Graph]] = {
    "dualswitch": build_dualswitch_topo,
    "first": build_first_topo,
    "linear": linear_3_node_topo,
    "simple-l2-switch": build_simple_l2_switch_topo,
    "square": build_square_topo,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Build a topology, print its network view and optionally run it."""
    parser = argparse.ArgumentParser(
        prog="tcpipsim", description="Simulate a small TCP/IP network topology."
    )
    parser.add_argument("topology", nargs="?", default="square", choices=sorted(TOPOLOGIES),
                        help="topology to build (default: square)")
    parser.add_argument("--listen", action="store_true",
                        help="bind the nodes' sockets and process frames until interrupted")
    args = parser.parse_args(argv)

    graph = TOPOLOGIES[args.topology](False)
    print(graph.dump_network(), end="")
    if args.listen:
        receiver = _start_receiver(graph)
        try:
            while receiver.is_alive():
                receiver.join(0.5)
        except KeyboardInterrupt:
            pass
        finally:
            receiver.stop()
    return 0