"""Layer 3 routing table with longest prefix match lookup."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from tcpipsim.addressing import apply_mask, int_to_ip

_IF_NAME_MAX = 15


class RouteError(Exception):
    """Raised when a route cannot be installed."""


@dataclass
class Route:
    """A routing table entry keyed by destination subnet and mask."""

    dest_ip: str
    mask: int
    is_direct: bool = True
    gw_ip: Optional[str] = None
    oif: Optional[str] = None
    nexthops: list = field(default_factory=list, compare=False)
    spf_metric: int = field(default=0, compare=False)


class RoutingTable:
    """Routes of one node; the most recently installed route comes first."""

    def __init__(self) -> None:
        self._routes: List[Route] = []

    def __iter__(self) -> Iterator[Route]:
        return iter(list(self._routes))

    def __len__(self) -> int:
        return len(self._routes)

    def _insert(self, route: Route) -> bool:
        old = self.lookup(route.dest_ip, route.mask)
        if old is not None and old == route:
            return False
        if old is not None:
            self._routes.remove(old)
        self._routes.insert(0, route)
        return True

    def add_direct_route(self, dst_ip: str, mask: int) -> Route:
        """Install a route to a directly connected subnet."""
        return self.add_route(dst_ip, mask, None, None)

    def add_route(self, dst_ip: str, mask: int, gw_ip: Optional[str],
                  oif: Optional[str]) -> Route:
        """Install a route; it is direct when neither gateway nor interface is given.

        Raises RouteError when an installed route already covers the destination.
        """
        subnet = apply_mask(dst_ip, mask)
        covering = self.lookup_lpm(subnet)
        if covering is not None:
            raise RouteError(
                f"route {covering.dest_ip}/{covering.mask} already covers {subnet}/{mask}"
            )
        route = Route(dest_ip=subnet, mask=mask, is_direct=not gw_ip and not oif)
        if gw_ip and oif:
            route.gw_ip = gw_ip
            route.oif = oif[:_IF_NAME_MAX]
        if not self._insert(route):
            raise RouteError(f"route {subnet}/{mask} installation failed")
        return route

    def lookup(self, ip_addr: str, mask: int) -> Optional[Route]:
        """Return the route with exactly this destination and mask."""
        return next(
            (r for r in self._routes if r.dest_ip == ip_addr and r.mask == mask),
            None,
        )

    def lookup_lpm(self, dst_ip: Union[int, str]) -> Optional[Route]:
        """Return the longest matching route, falling back to the default route."""
        dst_str = dst_ip if isinstance(dst_ip, str) else int_to_ip(dst_ip)
        best: Optional[Route] = None
        default: Optional[Route] = None
        longest = 0
        for route in self._routes:
            if route.dest_ip == "0.0.0.0" and route.mask == 0:
                default = route
            elif apply_mask(dst_str, route.mask) == route.dest_ip and route.mask > longest:
                longest = route.mask
                best = route
        return best if best is not None else default

    def delete(self, ip_addr: str, mask: int) -> bool:
        """Remove the route for the subnet of ``ip_addr``; tell whether one existed."""
        route = self.lookup(apply_mask(ip_addr, mask), mask)
        if route is None:
            return False
        self._routes.remove(route)
        return True

    def clear(self) -> None:
        self._routes.clear()

    def dump(self) -> str:
        """Render the table, one route per line."""
        return "".join(
            "\t%-18s %-4d %-18s %s\n" % (
                r.dest_ip,
                r.mask,
                "NA" if r.is_direct else (r.gw_ip or ""),
                "NA" if r.is_direct else (r.oif or ""),
            )
            for r in self._routes
        )