#!/usr/bin/env python3
"""
Wireless interface selection.

Picks the local interface that carries the wireless radio. On Linux the
kernel exposes a 'wireless' (or 'phy80211') entry under /sys/class/net for
every cfg80211 device, which is used when available. Elsewhere the interface
name is matched against a configurable pattern instead.
"""

import logging
import re
import socket
from pathlib import Path

import psutil

logger = logging.getLogger('WifiInterface')

SYSFS_NET_ROOT = '/sys/class/net'

# First character 'w', third character 'x', e.g. wlx00c0ca9a1b2c
DEFAULT_INTERFACE_PATTERN = r'^w.x'

ADDRESS_FAMILIES = (socket.AF_INET, socket.AF_INET6)


class NoInterfaceFound(Exception):
    """Raised when no usable wireless interface exists on this host"""


def address_bearing_interfaces():
    """Return names of interfaces with an IPv4 or IPv6 address, in enumeration order"""
    names = []
    for name, addrs in psutil.net_if_addrs().items():
        if any(getattr(addr, 'family', None) in ADDRESS_FAMILIES for addr in addrs):
            names.append(name)
    return names


def is_wireless(name: str, sysfs_root: str = SYSFS_NET_ROOT) -> bool:
    """Ask the kernel whether the interface is a wireless device"""
    iface_path = Path(sysfs_root) / name
    return (iface_path / 'wireless').exists() or (iface_path / 'phy80211').exists()


def select_wireless_interface(pattern: str = None, explicit: str = None,
                              sysfs_root: str = SYSFS_NET_ROOT) -> str:
    """Select the wireless interface used for scanning.

    Only interfaces carrying an IPv4 or IPv6 address are considered. An
    explicit name wins if it is among them. Otherwise the first interface
    the kernel reports as wireless is chosen, or, where that query is not
    available, the first one whose name matches ``pattern``.

    Raises NoInterfaceFound if nothing qualifies.
    """
    candidates = address_bearing_interfaces()
    if not candidates:
        raise NoInterfaceFound("No network interfaces with an assigned address")

    logger.debug(f"Address-bearing interfaces: {', '.join(candidates)}")

    if explicit:
        if explicit in candidates:
            logger.info(f"Selecting configured interface: {explicit}")
            return explicit
        raise NoInterfaceFound(f"Configured interface {explicit} has no assigned address")

    if Path(sysfs_root).is_dir():
        for name in candidates:
            if is_wireless(name, sysfs_root):
                logger.info(f"Selecting wireless interface: {name}")
                return name
        raise NoInterfaceFound(f"None of {', '.join(candidates)} is a wireless device")

    regex = re.compile(pattern or DEFAULT_INTERFACE_PATTERN)
    logger.debug(f"No {sysfs_root}, matching interface names against {regex.pattern}")
    for name in candidates:
        if regex.search(name):
            logger.info(f"Selecting interface by name: {name}")
            return name

    raise NoInterfaceFound(f"No interface name matches {regex.pattern}")
