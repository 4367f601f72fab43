"""ARP table: resolved entries, pending (sane) entries and queued packets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Tuple

from tcpipsim.addressing import ARP_REPLY, MAC_SIZE, int_to_ip
from tcpipsim.frames import ArpPacket

_IF_NAME_MAX = 15

PendingCallback = Callable[[Any, Any, "ArpEntry", "PendingPacket"], None]


class ArpError(Exception):
    """Raised on an inconsistent ARP table operation."""


@dataclass
class PendingPacket:
    """A packet waiting for its next hop's MAC address to be resolved."""

    callback: PendingCallback
    pkt: bytes

    @property
    def pkt_size(self) -> int:
        return len(self.pkt)


@dataclass
class ArpEntry:
    """Mapping of an IP address to a MAC; ``is_sane`` marks an unresolved entry."""

    ip_addr: str
    mac: bytes = bytes(MAC_SIZE)
    oif_name: str = ""
    is_sane: bool = False
    pending: List[PendingPacket] = field(default_factory=list, compare=False)


class ArpTable:
    """ARP entries of one node; the most recently added entry comes first."""

    def __init__(self) -> None:
        self._entries: List[ArpEntry] = []

    def __iter__(self) -> Iterator[ArpEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def _add(self, entry: ArpEntry) -> Tuple[bool, Optional[ArpEntry]]:
        """Add ``entry``; return whether it was inserted and the entry owning
        the packets that now wait for resolution, if any."""
        old = self.lookup(entry.ip_addr)
        if old is None:
            self._entries.insert(0, entry)
            return True, None
        if old == entry:
            return False, None
        if not old.is_sane:
            self._entries.remove(old)
            old.pending.clear()
            self._entries.insert(0, entry)
            return True, None
        if entry.is_sane:
            old.pending[:0] = entry.pending
            entry.pending = []
            return False, old
        old.mac = entry.mac
        old.oif_name = entry.oif_name[:_IF_NAME_MAX]
        return False, old

    def add(self, entry: ArpEntry) -> bool:
        """Add an entry; return False when an existing entry was kept or updated."""
        added, _ = self._add(entry)
        return added

    def lookup(self, ip_addr: str) -> Optional[ArpEntry]:
        return next((e for e in self._entries if e.ip_addr == ip_addr), None)

    def create_sane_entry(self, ip_addr: str) -> ArpEntry:
        """Return the unresolved entry for ``ip_addr``, creating it if needed.

        Raises ArpError if the address is already resolved.
        """
        entry = self.lookup(ip_addr)
        if entry is not None:
            if not entry.is_sane:
                raise ArpError(f"ARP entry for {ip_addr} is already resolved")
            return entry
        entry = ArpEntry(ip_addr=ip_addr, is_sane=True)
        if not self.add(entry):
            raise ArpError(f"could not add ARP entry for {ip_addr}")
        return entry

    def add_pending(self, entry: ArpEntry, callback: PendingCallback,
                    pkt: bytes) -> PendingPacket:
        """Queue ``pkt`` on ``entry`` until its address is resolved."""
        pending = PendingPacket(callback=callback, pkt=bytes(pkt))
        entry.pending.insert(0, pending)
        return pending

    def update_from_reply(self, arp_pkt: ArpPacket, iif: Any) -> ArpEntry:
        """Learn the sender of an ARP reply received on ``iif``.

        Queued packets for the address are handed to their callbacks as
        ``callback(iif.node, iif, entry, pending)``. Returns the table entry.
        """
        if arp_pkt.op_code != ARP_REPLY:
            raise ArpError(f"ARP op code {arp_pkt.op_code} is not a reply")
        entry = ArpEntry(
            ip_addr=int_to_ip(arp_pkt.src_ip),
            mac=arp_pkt.src_mac,
            oif_name=iif.if_name[:_IF_NAME_MAX],
            is_sane=False,
        )
        added, owner = self._add(entry)
        if owner is not None:
            node = getattr(iif, "node", None)
            while owner.pending:
                pending = owner.pending.pop(0)
                pending.callback(node, iif, entry, pending)
            owner.is_sane = False
        if added:
            return entry
        return self.lookup(entry.ip_addr) or entry

    def delete(self, ip_addr: str) -> bool:
        """Remove the entry and its queued packets; tell whether it existed."""
        entry = self.lookup(ip_addr)
        if entry is None:
            return False
        self._entries.remove(entry)
        entry.pending.clear()
        return True

    def dump(self) -> str:
        lines = ["*********ARP TABLE**********"]
        for e in self._entries:
            mac = ":".join(str(b) for b in e.mac)
            lines.append(f"IP: {e.ip_addr}, MAC: {mac}, OIF: {e.oif_name}")
        return "\n".join(lines) + "\n"