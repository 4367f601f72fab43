# tcpipsim

`tcpipsim` simulates a small TCP/IP network inside one process. Nodes act as
routers, hosts or layer 2 switches. Links join the nodes, and each node
exchanges frames with the others over loopback UDP sockets.

The package is made up of these modules:

- `tcpipsim.addressing`: IPv4 helpers (`ip_to_int`, `int_to_ip`, `apply_mask`,
  `is_same_subnet`), MAC helpers and the `IpHeader` dataclass
- `tcpipsim.frames`: `EthernetFrame`, `VlanHeader` and `ArpPacket`, each with
  `to_bytes` / `from_bytes`, plus `tag_frame`, `untag_frame` and `dump_eth_frame`
- `tcpipsim.arp`: `ArpTable`, which holds resolved entries and unresolved
  ("sane") entries with queued packets
- `tcpipsim.mactable`: `MacTable`, used for MAC learning
- `tcpipsim.routing`: `RoutingTable`, with longest prefix match lookup
- `tcpipsim.graph`: `Graph`, `Node`, `Interface`, `Link` and `L2Mode`
- `tcpipsim.l2config`: access/trunk modes and VLAN membership of interfaces
- `tcpipsim.l2switch`: VLAN aware forwarding and flooding
- `tcpipsim.stack`: the layer 2 / layer 3 packet path, ARP requests and replies
- `tcpipsim.ping`: `ping` and `ero_ping` (IP-in-IP through an explicit hop)
- `tcpipsim.spf`: next hop bookkeeping (`Nexthop`, `SpfResult`, `create_nexthop`,
  `insert_nexthop`, `union_nexthops`, `flush_nexthops`)
- `tcpipsim.comm`: the UDP transport and the receiver thread
- `tcpipsim.topologies`: prebuilt topologies and the `tcpipsim` command
- `tcpipsim.pktgen`: the `tcpipsim-pktgen` command

## Installation

```
pip install .
```

## Running the simulator

```
tcpipsim [TOPOLOGY] [--listen]
```

`TOPOLOGY` is one of `dualswitch`, `first`, `linear`, `simple-l2-switch` or
`square`. The default is `square`. The command builds the topology and prints
its network view: nodes, loopback addresses, interfaces, IP addresses, MACs, L2
modes and VLANs. With `--listen` it also binds a UDP socket for each node,
starting at port 40000. It then processes incoming frames until you interrupt
it.

## Generating test traffic

```
tcpipsim-pktgen [--port PORT] [--if-name NAME] [--dst-ip IP] [--interval SECONDS] [--count N]
```

This command sends a datagram to a node's UDP port (default 40000). The
datagram holds the name of the ingress interface (default `eth0/7`), followed by
a broadcast Ethernet frame that carries an ICMP IP header addressed to
`--dst-ip` (default `122.1.1.3`). The command sends one datagram every
`--interval` seconds (default 2). It stops after `--count` packets, or runs
until you interrupt it if `--count` is not given.

## Using the library

```python
import time

from tcpipsim.topologies import linear_3_node_topo
from tcpipsim.stack import send_arp_broadcast_request
from tcpipsim.ping import ping

topo = linear_3_node_topo(start_receiver=True)
r1 = topo.node_by_name("R1")
r2 = topo.node_by_name("R2")

r1.rt_table.add_route("122.1.1.3", 32, "10.1.1.2", "eth0/1")
r2.rt_table.add_route("122.1.1.3", 32, "11.1.1.1", "eth0/3")

send_arp_broadcast_request(r1, None, "10.1.1.2")
send_arp_broadcast_request(r2, None, "11.1.1.1")
time.sleep(0.5)  # let the ARP replies arrive

ping(r1, "122.1.1.3")  # R3 prints "IP_Address 122.1.1.3, Ping Success"
time.sleep(0.5)

print(topo.dump_network())
print(r1.rt_table.dump())
print(r1.arp_table.dump())
```

The `dump` methods return text and do not print it.

To build your own topology, use `Graph.add_node` and `Graph.add_link`. Then
configure it with `Node.set_loopback_address`, `Node.set_interface_ip`,
`tcpipsim.l2config.node_set_intf_l2_mode` and
`tcpipsim.l2config.node_set_intf_vlan_membership`. To exchange frames, pass
`start_receiver=True` to a prebuilt topology. For your own graph, call
`tcpipsim.comm.init_udp_socket` for each node and then
`tcpipsim.comm.start_pkt_receiver_thread(graph, tcpipsim.stack.layer2_frame_recv)`.

## What the package does not do

- It has no interactive command shell. You configure routes, resolve ARP,
  ping and set interfaces up or down through the Python API.
- It does not notify subscribers when an interface changes state.
- `tcpipsim.spf` only manages next hop arrays. It does not compute shortest
  paths or install SPF routes.