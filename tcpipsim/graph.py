"""Network topology: nodes, links and interfaces with their network properties."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from tcpipsim.addressing import MAC_SIZE, apply_mask, format_mac, is_same_subnet
from tcpipsim.arp import ArpTable
from tcpipsim.mactable import MacTable
from tcpipsim.routing import RoutingTable

IF_NAME_SIZE = 16
NODE_NAME_SIZE = 16
TOPOLOGY_NAME_SIZE = 32
MAX_IF_PER_NODE = 4
MAX_VLAN_MEMBERSHIP = 10


class L2Mode(enum.Enum):
    """Layer 2 operating mode of an interface."""

    ACCESS = "access"
    TRUNK = "trunk"
    UNKNOWN = "L2_MODE_UNKNOWN"

    def __str__(self) -> str:
        return self.value


def _hash_code(text: str, size: int) -> int:
    """Hash a name as stored in a zero padded buffer of ``size`` bytes."""
    buf = text.encode()[: size - 1].ljust(size, b"\0")
    value = 0
    for byte in buf:
        signed = byte - 256 if byte > 127 else byte
        value = ((value + signed) * 97) & 0xFFFFFFFF
    return value


def interface_mac(node_name: str, if_name: str) -> bytes:
    """Derive the deterministic MAC address of an interface from its names."""
    node_hash = _hash_code(node_name, NODE_NAME_SIZE)
    if_hash = _hash_code(if_name, IF_NAME_SIZE)
    combined = (node_hash * if_hash) & 0xFFFFFFFF
    return struct.pack("<I", combined) + bytes([node_hash & 0xFF, if_hash & 0xFF])


@dataclass(eq=False)
class Interface:
    """One end of a link, attached to a node."""

    if_name: str
    node: "Node"
    link: Optional["Link"] = None
    is_up: bool = True
    mac: bytes = bytes(MAC_SIZE)
    l2_mode: L2Mode = L2Mode.UNKNOWN
    vlans: List[int] = field(default_factory=lambda: [0] * MAX_VLAN_MEMBERSHIP)
    is_ipaddr_config: bool = False
    is_ipaddr_config_backup: bool = False
    ip_addr: str = ""
    mask: int = 0
    pkt_recv: int = 0
    pkt_sent: int = 0

    def __post_init__(self) -> None:
        self.if_name = self.if_name[: IF_NAME_SIZE - 1]

    def other_end(self) -> "Interface":
        """The interface at the far end of this interface's link."""
        if self.link is None:
            raise ValueError(f"interface {self.if_name} has no link")
        return self.link.intf2 if self.link.intf1 is self else self.link.intf1

    def neighbour_node(self) -> "Node":
        """The node at the far end of this interface's link."""
        return self.other_end().node

    def access_vlan_id(self) -> int:
        """VLAN id of an access interface, 0 otherwise or when unset."""
        return self.vlans[0] if self.l2_mode is L2Mode.ACCESS else 0

    def is_trunk_vlan_enabled(self, vlan_id: int) -> bool:
        """Tell whether a trunk interface carries ``vlan_id``."""
        return self.l2_mode is L2Mode.TRUNK and vlan_id in self.vlans

    def is_l3_bidirectional(self) -> bool:
        """Tell whether both ends are up, in L3 mode and in one subnet."""
        nbr = self.other_end()
        if not (self.is_up and nbr.is_up):
            return False
        if L2Mode.ACCESS in (self.l2_mode, nbr.l2_mode):
            return False
        if L2Mode.TRUNK in (self.l2_mode, nbr.l2_mode):
            return False
        if not (self.is_ipaddr_config and nbr.is_ipaddr_config):
            return False
        if not is_same_subnet(self.ip_addr, self.mask, nbr.ip_addr):
            return False
        return is_same_subnet(nbr.ip_addr, nbr.mask, self.ip_addr)

    def dump(self) -> str:
        cost = self.link.cost if self.link else 0
        return (
            f"Interface Name: {self.if_name}\n"
            f"\t Local Node: {self.node.name}, Nbr node: {self.neighbour_node().name}, "
            f"cost: {cost}\n"
        )

    def dump_props(self) -> str:
        text = self.dump()
        text += f"\t IF Status : {'UP' if self.is_up else 'DOWN'}\n"
        if self.is_ipaddr_config:
            text += f"\t IP Addr = {self.ip_addr}/{self.mask}"
            text += f"\t MAC = {format_mac(self.mac)}\n"
        else:
            text += f"\t l2 mode = {self.l2_mode}"
            text += "\t vlan membership : "
            text += "".join(f"{vlan}  " for vlan in self.vlans if vlan)
            text += "\n"
        return text

    def dump_stats(self) -> str:
        return (
            f"\t{self.if_name}\n"
            f"\tTx Statistics: {self.pkt_sent}\n"
            f"\tRx Statistics: {self.pkt_recv}\n"
        )


@dataclass(eq=False)
class Link:
    """A link joining two interfaces, with a routing cost."""

    intf1: Interface
    intf2: Interface
    cost: int = 1


@dataclass(eq=False)
class Node:
    """A network device with up to four interfaces."""

    name: str
    interfaces: List[Interface] = field(default_factory=list)
    udp_port_number: int = 0
    udp_sock: Optional[Any] = None
    arp_table: ArpTable = field(default_factory=ArpTable)
    mac_table: MacTable = field(default_factory=MacTable)
    rt_table: RoutingTable = field(default_factory=RoutingTable)
    is_lb_addr_config: bool = False
    lb_addr: str = ""
    spf_data: Optional[Any] = None

    def __post_init__(self) -> None:
        self.name = self.name[: NODE_NAME_SIZE - 1]

    def interface_by_name(self, if_name: str) -> Optional[Interface]:
        key = if_name[: IF_NAME_SIZE - 1]
        return next((i for i in self.interfaces if i.if_name == key), None)

    def _interface(self, if_name: str) -> Interface:
        intf = self.interface_by_name(if_name)
        if intf is None:
            raise KeyError(f"node {self.name} has no interface {if_name}")
        return intf

    def set_loopback_address(self, ip_addr: str) -> None:
        """Configure the loopback address and install its /32 direct route."""
        addr = ip_addr[:15]
        self.rt_table.add_direct_route(addr, 32)
        self.is_lb_addr_config = True
        self.lb_addr = addr

    def set_interface_ip(self, if_name: str, ip_addr: str, mask: int) -> None:
        """Configure an interface address and install its subnet's direct route."""
        intf = self._interface(if_name)
        addr = ip_addr[:15]
        self.rt_table.add_direct_route(addr, mask)
        intf.ip_addr = addr
        intf.mask = mask
        intf.is_ipaddr_config = True

    def unset_interface_ip(self, if_name: str) -> bool:
        """Remove an interface address and its direct route; False if none was set."""
        intf = self._interface(if_name)
        if not intf.is_ipaddr_config:
            return False
        self.rt_table.delete(intf.ip_addr, intf.mask)
        intf.is_ipaddr_config = False
        intf.ip_addr = ""
        intf.mask = 0
        return True

    def matching_subnet_interface(self, ip_addr: str) -> Optional[Interface]:
        """Return the interface whose configured subnet contains ``ip_addr``."""
        for intf in self.interfaces:
            if not intf.is_ipaddr_config:
                continue
            if apply_mask(intf.ip_addr, intf.mask) == apply_mask(ip_addr, intf.mask):
                return intf
        return None

    def dump(self) -> str:
        return f"Node Name: {self.name}\n" + "".join(i.dump() for i in self.interfaces)

    def dump_props(self) -> str:
        text = f"Node Name: {self.name}\n"
        if self.is_lb_addr_config:
            text += f"\t Lo Address: {self.lb_addr}/32\n"
        return text

    def dump_interface_stats(self) -> str:
        return "".join(i.dump_stats() for i in self.interfaces)


class Graph:
    """A named topology; iteration yields the most recently added node first."""

    def __init__(self, topology_name: str) -> None:
        self.topology_name = topology_name[: TOPOLOGY_NAME_SIZE - 1]
        self._nodes: List[Node] = []

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes))

    def add_node(self, node_name: str) -> Node:
        node = Node(node_name)
        self._nodes.insert(0, node)
        return node

    def add_link(self, node1: Node, node2: Node, from_if_name: str,
                 to_if_name: str, cost: int) -> Link:
        """Join two nodes with a link; raise ValueError if a node has no free slot."""
        for node in (node1, node2):
            if len(node.interfaces) >= MAX_IF_PER_NODE:
                raise ValueError(f"node {node.name} has no free interface slot")
        if node1 is node2 and len(node1.interfaces) + 2 > MAX_IF_PER_NODE:
            raise ValueError(f"node {node1.name} has no free interface slot")
        intf1 = Interface(from_if_name, node1)
        intf2 = Interface(to_if_name, node2)
        link = Link(intf1, intf2, cost)
        intf1.link = link
        intf2.link = link
        node1.interfaces.append(intf1)
        node2.interfaces.append(intf2)
        intf1.mac = interface_mac(node1.name, intf1.if_name)
        intf2.mac = interface_mac(node2.name, intf2.if_name)
        return link

    def node_by_name(self, node_name: str) -> Optional[Node]:
        key = node_name[: NODE_NAME_SIZE - 1]
        return next((n for n in self._nodes if n.name == key), None)

    def dump(self) -> str:
        return f"Topology Name: {self.topology_name}\n" + "".join(n.dump() for n in self._nodes)

    def dump_network(self) -> str:
        parts = [f"Topology Name = {self.topology_name}\n"]
        for node in self._nodes:
            parts.append(node.dump_props())
            parts.extend(i.dump_props() for i in node.interfaces)
        return "".join(parts)