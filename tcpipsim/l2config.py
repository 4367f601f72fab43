"""Layer 2 mode and VLAN membership configuration of interfaces."""

from __future__ import annotations

import logging
from typing import Union

from tcpipsim.graph import MAX_VLAN_MEMBERSHIP, Interface, L2Mode, Node

_MODES = {"access": L2Mode.ACCESS, "trunk": L2Mode.TRUNK}
_log = logging.getLogger(__name__)


def _parse_mode(mode: Union[L2Mode, str]) -> L2Mode:
    key = mode.value if isinstance(mode, L2Mode) else str(mode)
    try:
        return _MODES[key]
    except KeyError:
        raise ValueError(f"unknown L2 mode {key!r}") from None


def _lookup(node: Node, if_name: str) -> Interface:
    intf = node.interface_by_name(if_name)
    if intf is None:
        raise KeyError(f"node {node.name} has no interface {if_name}")
    return intf


def interface_set_l2_mode(interface: Interface, mode: Union[L2Mode, str]) -> None:
    """Put ``interface`` in access or trunk mode.

    An interface with an IP address gives it up. Moving from trunk to
    access drops all VLAN memberships.
    """
    new_mode = _parse_mode(mode)
    if interface.is_ipaddr_config:
        interface.is_ipaddr_config = False
        interface.is_ipaddr_config_backup = True
        interface.l2_mode = new_mode
        return
    current = interface.l2_mode
    if current is L2Mode.UNKNOWN or current is new_mode:
        interface.l2_mode = new_mode
        return
    if current is L2Mode.TRUNK and new_mode is L2Mode.ACCESS:
        interface.vlans[:] = [0] * MAX_VLAN_MEMBERSHIP
    interface.l2_mode = new_mode


def node_set_intf_l2_mode(node: Node, if_name: str, mode: Union[L2Mode, str]) -> None:
    """Set the L2 mode of the named interface of ``node``."""
    interface_set_l2_mode(_lookup(node, if_name), mode)


def interface_set_vlan(interface: Interface, vlan_id: int) -> None:
    """Add ``vlan_id`` to the interface's VLAN membership.

    An access interface holds a single VLAN, which is replaced; a trunk
    interface collects up to ten. Raises ValueError for an L3 interface,
    one in no L2 mode, a bad id or a full trunk.
    """
    if not 1 <= vlan_id <= 0xFFF:
        raise ValueError(f"VLAN id {vlan_id} out of range")
    if interface.is_ipaddr_config:
        raise ValueError(f"L3 mode enabled in interface {interface.if_name}")
    if interface.l2_mode is L2Mode.ACCESS:
        if any(interface.vlans[1:]):
            _log.warning("interface %s in access mode configured with more than one vlan id",
                         interface.if_name)
        interface.vlans[:] = [vlan_id] + [0] * (MAX_VLAN_MEMBERSHIP - 1)
        return
    if interface.l2_mode is L2Mode.TRUNK:
        if vlan_id in interface.vlans:
            return
        try:
            slot = interface.vlans.index(0)
        except ValueError:
            raise ValueError(
                f"max vlan slot per interface of {interface.if_name} exceeded"
            ) from None
        interface.vlans[slot] = vlan_id
        return
    raise ValueError(f"L2 mode not enabled in interface {interface.if_name}")


def node_set_intf_vlan_membership(node: Node, if_name: str, vlan_id: int) -> None:
    """Add ``vlan_id`` to the named interface of ``node``."""
    interface_set_vlan(_lookup(node, if_name), vlan_id)