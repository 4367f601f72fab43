"""Next hop bookkeeping used by shortest path first computation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from tcpipsim.addressing import MAX_NXT_HOPS
from tcpipsim.graph import Interface

INFINITE_METRIC = 0xFFFFFFFF

NexthopArray = List[Optional["Nexthop"]]


def _empty_nexthops() -> NexthopArray:
    return [None] * MAX_NXT_HOPS


@dataclass(eq=False)
class Nexthop:
    """Gateway address and outgoing interface, shared between results."""

    gw_ip: str
    oif: Interface
    ref_count: int = 0

    @property
    def node_name(self) -> str:
        return self.oif.neighbour_node().name


@dataclass(eq=False)
class SpfResult:
    """Shortest path outcome for one destination node."""

    node: Any
    spf_metric: int = 0
    nexthops: NexthopArray = field(default_factory=_empty_nexthops)


def create_nexthop(oif: Interface) -> Nexthop:
    """Make a next hop through ``oif`` towards the address at its far end."""
    return Nexthop(gw_ip=oif.other_end().ip_addr[:15], oif=oif)


def insert_nexthop(nexthops: NexthopArray, nexthop: Nexthop) -> bool:
    """Put ``nexthop`` in the first free slot; False when none is free."""
    for idx, slot in enumerate(nexthops):
        if slot is None:
            nexthops[idx] = nexthop
            nexthop.ref_count += 1
            return True
    return False


def nexthop_exists(nexthops: NexthopArray, nexthop: Nexthop) -> bool:
    """Tell whether a next hop through the same interface is present."""
    return any(nh is not None and nh.oif is nexthop.oif for nh in nexthops)


def union_nexthops(src: NexthopArray, dst: NexthopArray) -> int:
    """Add the next hops of ``src`` missing from ``dst``; return how many."""
    copied = 0
    for nexthop in src:
        if nexthop is None or nexthop_exists(dst, nexthop):
            continue
        if not insert_nexthop(dst, nexthop):
            break
        copied += 1
    return copied


def flush_nexthops(nexthops: NexthopArray) -> None:
    """Release every next hop held in ``nexthops`` and empty its slots."""
    for idx, nexthop in enumerate(nexthops):
        if nexthop is None:
            continue
        if nexthop.ref_count <= 0:
            raise ValueError(f"next hop {nexthop.gw_ip} is not referenced")
        nexthop.ref_count -= 1
        nexthops[idx] = None