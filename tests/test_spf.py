import pytest

from tcpipsim.addressing import MAX_NXT_HOPS
from tcpipsim.graph import Graph
from tcpipsim.spf import (
    SpfResult,
    create_nexthop,
    flush_nexthops,
    insert_nexthop,
    nexthop_exists,
    union_nexthops,
)


@pytest.fixture
def links():
    graph = Graph("spf")
    r1 = graph.add_node("R1")
    r2 = graph.add_node("R2")
    r3 = graph.add_node("R3")
    l12 = graph.add_link(r1, r2, "eth0/0", "eth0/1", 1)
    l13 = graph.add_link(r1, r3, "eth0/2", "eth0/3", 1)
    r2.set_interface_ip("eth0/1", "10.1.1.2", 24)
    r3.set_interface_ip("eth0/3", "20.1.1.2", 24)
    return l12, l13


def test_create_nexthop(links):
    l12, _ = links
    nh = create_nexthop(l12.intf1)
    assert nh.gw_ip == "10.1.1.2"
    assert nh.oif is l12.intf1
    assert nh.ref_count == 0
    assert nh.node_name == "R2"


def test_insert_takes_first_free_slot(links):
    l12, _ = links
    nh = create_nexthop(l12.intf1)
    array = [None] * MAX_NXT_HOPS
    array[0] = create_nexthop(l12.intf1)
    assert insert_nexthop(array, nh) is True
    assert array[1] is nh
    assert nh.ref_count == 1


def test_insert_into_full_array(links):
    l12, _ = links
    array = [create_nexthop(l12.intf1) for _ in range(MAX_NXT_HOPS)]
    extra = create_nexthop(l12.intf1)
    assert insert_nexthop(array, extra) is False
    assert extra.ref_count == 0


def test_nexthop_exists_by_interface(links):
    l12, l13 = links
    array = [None] * MAX_NXT_HOPS
    insert_nexthop(array, create_nexthop(l12.intf1))
    assert nexthop_exists(array, create_nexthop(l12.intf1)) is True
    assert nexthop_exists(array, create_nexthop(l13.intf1)) is False


def test_union_copies_missing_only(links):
    l12, l13 = links
    shared = create_nexthop(l12.intf1)
    other = create_nexthop(l13.intf1)
    src = [None] * MAX_NXT_HOPS
    dst = [None] * MAX_NXT_HOPS
    insert_nexthop(src, shared)
    insert_nexthop(src, other)
    insert_nexthop(dst, create_nexthop(l12.intf1))
    assert union_nexthops(src, dst) == 1
    assert dst[1] is other
    assert other.ref_count == 2
    assert shared.ref_count == 1


def test_union_stops_when_full(links):
    l12, l13 = links
    src = [None] * MAX_NXT_HOPS
    insert_nexthop(src, create_nexthop(l13.intf1))
    dst = [create_nexthop(l12.intf1) for _ in range(MAX_NXT_HOPS)]
    assert union_nexthops(src, dst) == 0
    assert src[0].ref_count == 1


def test_flush_releases_references(links):
    l12, _ = links
    nh = create_nexthop(l12.intf1)
    a = [None] * MAX_NXT_HOPS
    b = [None] * MAX_NXT_HOPS
    insert_nexthop(a, nh)
    insert_nexthop(b, nh)
    flush_nexthops(a)
    assert a == [None] * MAX_NXT_HOPS
    assert nh.ref_count == 1


def test_flush_unreferenced_raises(links):
    l12, _ = links
    array = [create_nexthop(l12.intf1)] + [None] * (MAX_NXT_HOPS - 1)
    with pytest.raises(ValueError):
        flush_nexthops(array)


def test_spf_result_starts_empty(links):
    l12, _ = links
    result = SpfResult(node=l12.intf2.node)
    assert result.nexthops == [None] * MAX_NXT_HOPS
    assert insert_nexthop(result.nexthops, create_nexthop(l12.intf1)) is True
    assert SpfResult(node=None).nexthops == [None] * MAX_NXT_HOPS