"""
Network Interfaces - Resolve a local IPv4 address from an interface name.

A server can be started by interface name (eth0, en0, ...) instead of by IP.
The lookup uses the classic Linux ioctls:

- SIOCGIFFLAGS: interface flags, we need both IFF_UP and IFF_RUNNING
- SIOCGIFADDR:  the IPv4 address assigned to the interface

Physical link state comes from sysfs: /sys/class/net/<ifname>/carrier holds
"1" when a cable is plugged in and the link is up, "0" otherwise.
"""

import fcntl
import logging
import os
import socket
import struct


logger = logging.getLogger(__name__)


SIOCGIFFLAGS = 0x8913
SIOCGIFADDR = 0x8915

IFF_UP = 0x1
IFF_RUNNING = 0x40

# struct ifreq: 16-byte name followed by a 24-byte union
IFNAMSIZ = 16
IFREQ_SIZE = 40

SYSFS_NET_ROOT = "/sys/class/net"


def _ifreq(name: str) -> bytes:
    return struct.pack(f"{IFNAMSIZ}s", name.encode()[:IFNAMSIZ - 1]).ljust(IFREQ_SIZE, b"\0")


def interface_flags(sock: socket.socket, name: str) -> int:
    """Return the IFF_* flags of an interface. Raises OSError."""
    raw = fcntl.ioctl(sock.fileno(), SIOCGIFFLAGS, _ifreq(name))
    return struct.unpack_from("H", raw, IFNAMSIZ)[0]


def interface_ipv4(sock: socket.socket, name: str) -> str:
    """
    Return the IPv4 address of an interface.

    Raises OSError if the interface has no IPv4 address.
    """
    raw = fcntl.ioctl(sock.fileno(), SIOCGIFADDR, _ifreq(name))
    # sockaddr_in: family (2), port (2), address (4)
    return socket.inet_ntop(socket.AF_INET, raw[IFNAMSIZ + 4:IFNAMSIZ + 8])


def get_ip_address_by_interface(interface_name: str) -> str:
    """
    Look up the IPv4 address of an interface that is up and running.

    Args:
        interface_name: Interface name, e.g. "eth0"

    Returns:
        Dotted-quad address, or "" if no such interface is up, running and
        carrying an IPv4 address
    """
    try:
        names = [name for _, name in socket.if_nameindex()]
    except OSError as e:
        logger.error(f"Interface enumeration failed: {e}")
        return ""

    if interface_name not in names:
        return ""

    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            flags = interface_flags(sock, interface_name)
            if not (flags & IFF_UP and flags & IFF_RUNNING):
                logger.debug(f"Interface {interface_name} is not up and running")
                return ""
            return interface_ipv4(sock, interface_name)
        except OSError as e:
            logger.debug(f"No IPv4 address on {interface_name}: {e}")
            return ""


def carrier_path(interface_name: str, sysfs_root: str = SYSFS_NET_ROOT) -> str:
    return os.path.join(sysfs_root, interface_name, "carrier")


def check_link_status(interface_name: str, sysfs_root: str = SYSFS_NET_ROOT) -> bool:
    """
    Check if a cable is physically connected to an interface.

    Raises:
        OSError: If the carrier file cannot be read
    """
    with open(carrier_path(interface_name, sysfs_root)) as f:
        status = f.read().strip()
    return status == "1"
