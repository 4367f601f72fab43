"""MAC learning table of a layer 2 switch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional

from tcpipsim.addressing import MAC_SIZE

_IF_NAME_MAX = 15


@dataclass(frozen=True)
class MacEntry:
    """A learnt MAC address and the interface it was seen on."""

    mac: bytes
    oif_name: str

    def __post_init__(self) -> None:
        if len(self.mac) != MAC_SIZE:
            raise ValueError(f"MAC must be {MAC_SIZE} bytes, got {len(self.mac)}")


class MacTable:
    """MAC entries of one switch; the most recently learnt entry comes first."""

    def __init__(self) -> None:
        self._entries: List[MacEntry] = []

    def __iter__(self) -> Iterator[MacEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: MacEntry) -> bool:
        """Add or replace the entry for its MAC; False if it was already present."""
        old = self.lookup(entry.mac)
        if old == entry:
            return False
        if old is not None:
            self._entries.remove(old)
        self._entries.insert(0, entry)
        return True

    def lookup(self, mac: bytes) -> Optional[MacEntry]:
        key = bytes(mac[:MAC_SIZE])
        return next((e for e in self._entries if e.mac == key), None)

    def delete(self, mac: bytes) -> bool:
        entry = self.lookup(mac)
        if entry is None:
            return False
        self._entries.remove(entry)
        return True

    def clear(self) -> None:
        self._entries.clear()

    def learn(self, src_mac: bytes, if_name: str) -> bool:
        """Record that ``src_mac`` is reachable through ``if_name``."""
        return self.add(MacEntry(bytes(src_mac[:MAC_SIZE]), if_name[:_IF_NAME_MAX]))

    def dump(self) -> str:
        lines = ["*************MAC TABLE*******************"]
        for e in self._entries:
            mac = ":".join(str(b) for b in e.mac)
            lines.append(f"|Mac: {mac} | Interface: {e.oif_name} |")
        return "\n".join(lines) + "\n"