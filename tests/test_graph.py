import pytest

from tcpipsim.addressing import format_mac
from tcpipsim.graph import L2Mode, Graph, interface_mac
from tcpipsim.routing import RouteError


@pytest.fixture
def pair():
    graph = Graph("test topo")
    r1 = graph.add_node("R1")
    r2 = graph.add_node("R2")
    link = graph.add_link(r1, r2, "eth0/0", "eth0/1", 1)
    return graph, r1, r2, link


def test_names_truncated():
    graph = Graph("T" * 40)
    node = graph.add_node("N" * 20)
    assert len(graph.topology_name) == 31
    assert node.name == "N" * 15


def test_link_ends(pair):
    _, r1, r2, link = pair
    a = r1.interface_by_name("eth0/0")
    b = r2.interface_by_name("eth0/1")
    assert a.other_end() is b
    assert b.other_end() is a
    assert a.neighbour_node() is r2
    assert b.neighbour_node() is r1
    assert link.cost == 1


def test_interface_macs(pair):
    _, r1, r2, _ = pair
    a = r1.interface_by_name("eth0/0")
    b = r2.interface_by_name("eth0/1")
    assert a.mac == interface_mac("R1", "eth0/0")
    assert len(a.mac) == 6
    assert a.mac != b.mac


def test_no_free_slot():
    graph = Graph("g")
    hub = graph.add_node("hub")
    for i in range(4):
        graph.add_link(hub, graph.add_node(f"n{i}"), f"e{i}", "e", 1)
    with pytest.raises(ValueError):
        graph.add_link(hub, graph.add_node("extra"), "e9", "e", 1)
    assert len(hub.interfaces) == 4


def test_node_lookup_and_order(pair):
    graph, r1, r2, _ = pair
    assert graph.node_by_name("R1") is r1
    assert graph.node_by_name("R9") is None
    assert list(graph) == [r2, r1]


def test_loopback_route(pair):
    _, r1, _, _ = pair
    r1.set_loopback_address("122.1.1.1")
    route = r1.rt_table.lookup("122.1.1.1", 32)
    assert route.is_direct
    assert r1.is_lb_addr_config
    assert "\t Lo Address: 122.1.1.1/32\n" in r1.dump_props()


def test_interface_ip_and_unset(pair):
    _, r1, _, _ = pair
    r1.set_interface_ip("eth0/0", "10.1.1.1", 24)
    intf = r1.interface_by_name("eth0/0")
    assert intf.is_ipaddr_config and intf.mask == 24
    assert r1.rt_table.lookup("10.1.1.0", 24) is not None
    assert r1.unset_interface_ip("eth0/0") is True
    assert r1.rt_table.lookup("10.1.1.0", 24) is None
    assert r1.unset_interface_ip("eth0/0") is False


def test_set_ip_unknown_interface(pair):
    _, r1, _, _ = pair
    with pytest.raises(KeyError):
        r1.set_interface_ip("eth9", "10.1.1.1", 24)


def test_duplicate_route_rejected(pair):
    _, r1, _, _ = pair
    r1.set_loopback_address("122.1.1.1")
    with pytest.raises(RouteError):
        r1.set_loopback_address("122.1.1.1")


def test_matching_subnet_interface(pair):
    _, r1, _, _ = pair
    r1.set_interface_ip("eth0/0", "10.1.1.1", 24)
    assert r1.matching_subnet_interface("10.1.1.2") is r1.interface_by_name("eth0/0")
    assert r1.matching_subnet_interface("20.1.1.2") is None


def test_vlan_helpers(pair):
    _, r1, _, _ = pair
    intf = r1.interface_by_name("eth0/0")
    intf.vlans[0] = 10
    assert intf.access_vlan_id() == 0
    intf.l2_mode = L2Mode.ACCESS
    assert intf.access_vlan_id() == 10
    assert not intf.is_trunk_vlan_enabled(10)
    intf.l2_mode = L2Mode.TRUNK
    assert intf.is_trunk_vlan_enabled(10)
    assert not intf.is_trunk_vlan_enabled(11)


def test_l3_bidirectional(pair):
    _, r1, r2, _ = pair
    r1.set_interface_ip("eth0/0", "10.1.1.1", 24)
    r2.set_interface_ip("eth0/1", "10.1.1.2", 24)
    a = r1.interface_by_name("eth0/0")
    assert a.is_l3_bidirectional()
    a.other_end().is_up = False
    assert not a.is_l3_bidirectional()
    a.other_end().is_up = True
    a.l2_mode = L2Mode.TRUNK
    assert not a.is_l3_bidirectional()


def test_l3_bidirectional_different_subnets(pair):
    _, r1, r2, _ = pair
    r1.set_interface_ip("eth0/0", "10.1.1.1", 24)
    r2.set_interface_ip("eth0/1", "20.1.1.2", 24)
    assert not r1.interface_by_name("eth0/0").is_l3_bidirectional()


def test_dump_interface(pair):
    _, r1, _, _ = pair
    intf = r1.interface_by_name("eth0/0")
    assert intf.dump() == "Interface Name: eth0/0\n\t Local Node: R1, Nbr node: R2, cost: 1\n"


def test_dump_props(pair):
    _, r1, _, _ = pair
    intf = r1.interface_by_name("eth0/0")
    intf.is_up = False
    text = intf.dump_props()
    assert "\t IF Status : DOWN\n" in text
    assert "\t l2 mode = L2_MODE_UNKNOWN" in text
    r1.set_interface_ip("eth0/0", "10.1.1.1", 24)
    text = intf.dump_props()
    assert "\t IP Addr = 10.1.1.1/24" in text
    assert f"\t MAC = {format_mac(intf.mac)}\n" in text


def test_dump_stats(pair):
    _, r1, _, _ = pair
    intf = r1.interface_by_name("eth0/0")
    intf.pkt_sent = 3
    intf.pkt_recv = 5
    assert r1.dump_interface_stats() == "\teth0/0\n\tTx Statistics: 3\n\tRx Statistics: 5\n"


def test_graph_dumps(pair):
    graph, _, _, _ = pair
    assert graph.dump().startswith("Topology Name: test topo\n")
    text = graph.dump_network()
    assert text.startswith("Topology Name = test topo\n")
    assert text.count("Node Name: ") == 2
    assert text.count("Interface Name: ") == 2