import select
import socket

import pytest

from tcpipsim.addressing import (
    ARP_BROAD_REQ,
    ARP_MSG,
    ARP_REPLY,
    ETH_IP,
    ICMP_PRO,
    IpHeader,
    broadcast_mac,
    ip_to_int,
)
from tcpipsim.arp import ArpEntry
from tcpipsim.comm import pkt_receive
from tcpipsim.frames import ArpPacket, EthernetFrame, MAX_PAYLOAD_SIZE, VlanHeader
from tcpipsim.graph import Graph
from tcpipsim.l2config import node_set_intf_l2_mode, node_set_intf_vlan_membership
from tcpipsim.stack import (
    demote_packet_to_layer3,
    demote_pkt_to_layer2,
    is_layer3_local_delivery,
    layer2_frame_recv,
    promote_pkt_to_layer3,
    qualify_frame_on_interface,
    send_arp_broadcast_request,
)

OTHER_MAC = bytes([2, 0, 0, 0, 0, 1])


class Wire:
    def __init__(self):
        self.socks = {}

    def attach(self, *nodes):
        for node in nodes:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.bind(("127.0.0.1", 0))
            sock.settimeout(2.0)
            node.udp_port_number = sock.getsockname()[1]
            self.socks[node.name] = sock

    def take(self, node):
        return self.socks[node.name].recv(4096)

    def frame(self, node):
        data = self.take(node)
        return data[:16].rstrip(b"\0").decode(), EthernetFrame.from_bytes(data[16:])

    def deliver(self, node):
        return pkt_receive(node, self.take(node), layer2_frame_recv)

    def quiet(self, node):
        readable, _, _ = select.select([self.socks[node.name]], [], [], 0.2)
        return readable == []

    def close(self):
        for sock in self.socks.values():
            sock.close()


@pytest.fixture
def wire():
    w = Wire()
    yield w
    w.close()


def two_routers():
    g = Graph("pair")
    r1 = g.add_node("R1")
    r2 = g.add_node("R2")
    g.add_link(r1, r2, "eth0/1", "eth0/2", 1)
    r1.set_loopback_address("122.1.1.1")
    r1.set_interface_ip("eth0/1", "10.1.1.1", 24)
    r2.set_loopback_address("122.1.1.2")
    r2.set_interface_ip("eth0/2", "10.1.1.2", 24)
    return r1, r2


def switch_node():
    g = Graph("sw")
    host = g.add_node("H1")
    sw = g.add_node("SW")
    g.add_link(host, sw, "eth0/1", "eth0/2", 1)
    return sw, sw.interface_by_name("eth0/2")


def test_qualify_l3_interface():
    r1, _ = two_routers()
    intf = r1.interface_by_name("eth0/1")
    own = EthernetFrame(intf.mac, OTHER_MAC, ETH_IP)
    bcast = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP)
    other = EthernetFrame(OTHER_MAC, OTHER_MAC, ETH_IP)
    tagged = EthernetFrame(intf.mac, OTHER_MAC, ETH_IP, vlan=VlanHeader(vid=10))
    assert qualify_frame_on_interface(intf, own) == (True, 0)
    assert qualify_frame_on_interface(intf, bcast) == (True, 0)
    assert qualify_frame_on_interface(intf, other) == (False, 0)
    assert qualify_frame_on_interface(intf, tagged) == (False, 0)


def test_qualify_access_interface():
    sw, intf = switch_node()
    node_set_intf_l2_mode(sw, "eth0/2", "access")
    untagged = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP)
    assert qualify_frame_on_interface(intf, untagged) == (False, 0)
    node_set_intf_vlan_membership(sw, "eth0/2", 10)
    assert qualify_frame_on_interface(intf, untagged) == (True, 10)
    match = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP, vlan=VlanHeader(vid=10))
    mismatch = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP, vlan=VlanHeader(vid=20))
    assert qualify_frame_on_interface(intf, match) == (True, 0)
    assert qualify_frame_on_interface(intf, mismatch) == (False, 0)


def test_qualify_trunk_interface():
    sw, intf = switch_node()
    node_set_intf_l2_mode(sw, "eth0/2", "trunk")
    node_set_intf_vlan_membership(sw, "eth0/2", 10)
    node_set_intf_vlan_membership(sw, "eth0/2", 11)
    untagged = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP)
    enabled = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP, vlan=VlanHeader(vid=11))
    disabled = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP, vlan=VlanHeader(vid=12))
    assert qualify_frame_on_interface(intf, untagged) == (False, 0)
    assert qualify_frame_on_interface(intf, enabled) == (True, 0)
    assert qualify_frame_on_interface(intf, disabled) == (False, 0)


def test_qualify_rejects_unconfigured_interface():
    _, intf = switch_node()
    frame = EthernetFrame(broadcast_mac(), OTHER_MAC, ETH_IP)
    assert qualify_frame_on_interface(intf, frame) == (False, 0)


def test_local_delivery_addresses():
    r1, _ = two_routers()
    assert is_layer3_local_delivery(r1, "122.1.1.1")
    assert is_layer3_local_delivery(r1, ip_to_int("10.1.1.1"))
    assert not is_layer3_local_delivery(r1, "10.1.1.2")


def test_arp_request_on_the_wire(wire):
    r1, r2 = two_routers()
    wire.attach(r2)
    sent = send_arp_broadcast_request(r1, None, "10.1.1.2")
    if_name, frame = wire.frame(r2)
    assert if_name == "eth0/2"
    assert frame == sent
    assert frame.dst_mac == broadcast_mac()
    assert frame.ethertype == ARP_MSG
    arp = ArpPacket.from_bytes(frame.payload)
    assert arp.op_code == ARP_BROAD_REQ
    assert arp.dst_ip == ip_to_int("10.1.1.2")
    assert arp.src_mac == r1.interface_by_name("eth0/1").mac


def test_arp_request_errors():
    r1, _ = two_routers()
    with pytest.raises(LookupError):
        send_arp_broadcast_request(r1, None, "99.1.1.1")
    with pytest.raises(ValueError):
        send_arp_broadcast_request(r1, None, "10.1.1.1")


def test_arp_resolution_round_trip(wire):
    r1, r2 = two_routers()
    wire.attach(r1, r2)
    send_arp_broadcast_request(r1, None, "10.1.1.2")
    assert wire.deliver(r2)
    data = wire.take(r1)
    reply = ArpPacket.from_bytes(EthernetFrame.from_bytes(data[16:]).payload)
    assert reply.op_code == ARP_REPLY
    assert pkt_receive(r1, data, layer2_frame_recv)
    entry = r1.arp_table.lookup("10.1.1.2")
    assert entry.mac == r2.interface_by_name("eth0/2").mac
    assert entry.oif_name == "eth0/1"
    assert not entry.is_sane


def test_arp_request_for_other_address_gets_no_reply(wire):
    r1, r2 = two_routers()
    wire.attach(r1)
    r1_intf = r1.interface_by_name("eth0/1")
    arp = ArpPacket(op_code=ARP_BROAD_REQ, src_mac=r1_intf.mac,
                    src_ip=ip_to_int("10.1.1.1"), dst_ip=ip_to_int("10.1.1.9"))
    frame = EthernetFrame(broadcast_mac(), r1_intf.mac, ARP_MSG, arp.to_bytes())
    assert layer2_frame_recv(r2, r2.interface_by_name("eth0/2"), frame)
    assert wire.quiet(r1)


def test_packet_waits_for_arp_then_goes_out(wire, capsys):
    r1, r2 = two_routers()
    wire.attach(r1, r2)
    assert demote_packet_to_layer3(r1, b"", ICMP_PRO, "10.1.1.2") is False
    entry = r1.arp_table.lookup("10.1.1.2")
    assert entry.is_sane
    assert len(entry.pending) == 1
    assert wire.deliver(r2)
    assert wire.deliver(r1)
    assert not entry.is_sane
    assert entry.pending == []
    data = wire.take(r2)
    frame = EthernetFrame.from_bytes(data[16:])
    assert frame.dst_mac == r2.interface_by_name("eth0/2").mac
    header = IpHeader.from_bytes(frame.payload)
    assert header.dst_ip == ip_to_int("10.1.1.2")
    assert header.src_ip == ip_to_int("122.1.1.1")
    assert pkt_receive(r2, data, layer2_frame_recv)
    assert "IP_Address 10.1.1.2, Ping Success" in capsys.readouterr().out


def test_no_route_raises():
    r1, _ = two_routers()
    with pytest.raises(LookupError):
        demote_packet_to_layer3(r1, None, ICMP_PRO, "99.9.9.9")


def test_known_next_hop_sends_immediately(wire):
    r1, r2 = two_routers()
    wire.attach(r2)
    r2_mac = r2.interface_by_name("eth0/2").mac
    r1.arp_table.add(ArpEntry(ip_addr="10.1.1.2", mac=r2_mac, oif_name="eth0/1"))
    assert demote_packet_to_layer3(r1, b"data", ICMP_PRO, "10.1.1.2") is True
    _, frame = wire.frame(r2)
    assert frame.src_mac == r1.interface_by_name("eth0/1").mac
    header = IpHeader.from_bytes(frame.payload)
    assert frame.payload[20:24] == b"data"
    assert header.total_length_bytes == len(frame.payload)


def test_demote_pkt_to_layer2_limits():
    r1, _ = two_routers()
    assert demote_pkt_to_layer2(r1, "10.1.1.2", None, b"x", ARP_MSG) is False
    with pytest.raises(ValueError):
        demote_pkt_to_layer2(r1, "10.1.1.2", None, bytes(MAX_PAYLOAD_SIZE), ETH_IP)


def test_promote_ignores_non_ip():
    r1, _ = two_routers()
    packet = IpHeader(protocol=ICMP_PRO, dst_ip=ip_to_int("122.1.1.1")).to_bytes()
    assert promote_pkt_to_layer3(r1, None, packet, ARP_MSG) is False
    assert promote_pkt_to_layer3(r1, None, packet, ETH_IP) is True


def test_unknown_destination_is_dropped():
    r1, _ = two_routers()
    packet = IpHeader(protocol=ICMP_PRO, dst_ip=ip_to_int("99.1.1.1")).to_bytes()
    assert promote_pkt_to_layer3(r1, None, packet, ETH_IP) is False


def test_frame_for_other_mac_rejected():
    r1, _ = two_routers()
    frame = EthernetFrame(OTHER_MAC, OTHER_MAC, ETH_IP, b"")
    assert layer2_frame_recv(r1, r1.interface_by_name("eth0/1"), frame) is False


def test_switch_tags_learns_and_floods(wire):
    g = Graph("l2")
    h1 = g.add_node("H1")
    h2 = g.add_node("H2")
    sw = g.add_node("SW")
    g.add_link(h1, sw, "eth0/1", "eth0/2", 1)
    g.add_link(h2, sw, "eth0/4", "eth0/3", 1)
    for if_name in ("eth0/2", "eth0/3"):
        node_set_intf_l2_mode(sw, if_name, "access")
        node_set_intf_vlan_membership(sw, if_name, 10)
    wire.attach(h2)
    h1_mac = h1.interface_by_name("eth0/1").mac
    frame = EthernetFrame(broadcast_mac(), h1_mac, ETH_IP, b"abc")
    assert layer2_frame_recv(sw, sw.interface_by_name("eth0/2"), frame)
    assert sw.mac_table.lookup(h1_mac).oif_name == "eth0/2"
    if_name, out = wire.frame(h2)
    assert if_name == "eth0/4"
    assert not out.is_vlan_tagged
    assert out.payload == b"abc"
    assert out.src_mac == h1_mac