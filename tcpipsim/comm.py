"""UDP transport that carries frames between simulated nodes."""

from __future__ import annotations

import itertools
import logging
import selectors
import socket
import threading
from typing import Any, Callable, Union

from tcpipsim.graph import IF_NAME_SIZE, Graph, Interface, Node

MAX_RECEIVE_BUFFER_SIZE = 2048
MAX_SEND_BUFFER_SIZE = 2048
MAX_PACKET_BUFFER_SIZE = MAX_SEND_BUFFER_SIZE
FIRST_UDP_PORT = 40000
LOOPBACK = "127.0.0.1"

FrameHandler = Callable[[Node, Interface, bytes], Any]

_port_numbers = itertools.count(FIRST_UDP_PORT)
_log = logging.getLogger(__name__)


def init_udp_socket(node: Node) -> socket.socket:
    """Give ``node`` the next UDP port and a socket bound to it."""
    port = next(_port_numbers)
    node.udp_port_number = port
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind(("", port))
    except OSError as exc:
        sock.close()
        raise OSError(exc.errno, f"socket bind failed for node {node.name}") from exc
    node.udp_sock = sock
    return sock


def _if_name_header(if_name: str) -> bytes:
    return if_name.encode()[: IF_NAME_SIZE - 1].ljust(IF_NAME_SIZE, b"\0")


def pkt_receive(node: Node, data: bytes, handler: FrameHandler) -> bool:
    """Hand a datagram received by ``node`` to ``handler``.

    The datagram starts with the receiving interface's name padded to 16
    bytes. Returns False when that interface is down. Raises LookupError
    when the node has no such interface.
    """
    data = bytes(data)
    if len(data) < IF_NAME_SIZE:
        raise ValueError(f"datagram of {len(data)} bytes carries no interface name")
    if_name = data[:IF_NAME_SIZE].split(b"\0", 1)[0].decode(errors="replace")
    intf = node.interface_by_name(if_name)
    if intf is None:
        raise LookupError(f"packet received on unknown interface {if_name!r} of node {node.name}")
    _log.debug("message received on node %s, by interface %s", node.name, if_name)
    if not intf.is_up:
        return False
    intf.pkt_recv += 1
    handler(node, intf, data[IF_NAME_SIZE:])
    return True


def send_pkt_out(pkt: Union[bytes, Any], interface: Interface) -> int:
    """Send ``pkt`` out of ``interface`` to the node at the far end.

    ``pkt`` is bytes or anything with ``to_bytes()``. Returns the number of
    bytes sent, or 0 when the interface is down.
    """
    payload = pkt.to_bytes() if hasattr(pkt, "to_bytes") else bytes(pkt)
    if not interface.is_up:
        return 0
    nbr_intf = interface.other_end()
    nbr_node = nbr_intf.node
    if len(payload) + IF_NAME_SIZE > MAX_SEND_BUFFER_SIZE:
        raise ValueError(f"packet of {len(payload)} bytes does not fit the send buffer")
    datagram = _if_name_header(nbr_intf.if_name) + payload
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
        sent = sock.sendto(datagram, (LOOPBACK, nbr_node.udp_port_number))
    interface.pkt_sent += 1
    return sent


class _PacketReceiver(threading.Thread):
    """Daemon thread reading every node's socket and dispatching datagrams."""

    def __init__(self, graph: Graph, handler: FrameHandler) -> None:
        super().__init__(name="pkt-receiver", daemon=True)
        self._graph = graph
        self._handler = handler
        self._stop_event = threading.Event()

    def run(self) -> None:
        with selectors.DefaultSelector() as selector:
            for node in self._graph:
                if node.udp_sock is not None:
                    selector.register(node.udp_sock, selectors.EVENT_READ, node)
            if not selector.get_map():
                return
            while not self._stop_event.is_set():
                for key, _ in selector.select(timeout=0.1):
                    try:
                        data = key.fileobj.recv(MAX_RECEIVE_BUFFER_SIZE)
                        pkt_receive(key.data, data, self._handler)
                    except (LookupError, ValueError, OSError) as exc:
                        _log.warning("%s", exc)

    def stop(self, timeout: float = 2.0) -> None:
        """Ask the thread to finish and wait for it."""
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)


def start_pkt_receiver_thread(graph: Graph, handler: FrameHandler) -> _PacketReceiver:
    """Start a daemon thread delivering datagrams of all nodes to ``handler``."""
    receiver = _PacketReceiver(graph, handler)
    receiver.start()
    return receiver