"""Local network interface enumeration via psutil."""

import logging
import socket

import psutil

from netan.errors import NetworkInterfaceError
from netan.models import InterfaceAddress, NetworkInterfaceInfo

logger = logging.getLogger(__name__)

# Name prefixes mapped to an interface kind; first match wins.
_KIND_PREFIXES: tuple[tuple[str, str], ...] = (
    ("wl", "wireless"),
    ("wifi", "wireless"),
    ("wi-fi", "wireless"),
    ("tun", "tunnel"),
    ("tap", "tunnel"),
    ("utun", "tunnel"),
    ("wg", "tunnel"),
    ("ppp", "ppp"),
    ("docker", "virtual"),
    ("br-", "virtual"),
    ("veth", "virtual"),
    ("virbr", "virtual"),
    ("vmnet", "virtual"),
)

_LINK_FAMILY = getattr(psutil, "AF_LINK", None)


def interface_kind(name: str) -> str:
    """Guess a coarse interface category from its OS name."""
    lowered = name.lower()
    for prefix, kind in _KIND_PREFIXES:
        if lowered.startswith(prefix):
            return kind
    return "ethernet"


def list_interfaces() -> list[NetworkInterfaceInfo]:
    """Return the local interfaces that are up and not loopback.

    Each entry carries its IPv4 addresses and netmasks, so callers can
    derive the subnet to sweep.

    Raises:
        NetworkInterfaceError: If the OS interface tables can't be read.
    """
    try:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (OSError, RuntimeError) as exc:
        raise NetworkInterfaceError(str(exc)) from exc

    interfaces: list[NetworkInterfaceInfo] = []
    for name, entries in addrs.items():
        stat = stats.get(name)
        if stat is None or not stat.isup:
            logger.debug("Skipping interface %s: not up", name)
            continue
        if _is_loopback(name, entries, stat):
            logger.debug("Skipping interface %s: loopback", name)
            continue

        ipv4 = tuple(
            InterfaceAddress(address=entry.address, netmask=entry.netmask)
            for entry in entries
            if entry.family == socket.AF_INET
        )
        mac = next(
            (
                entry.address
                for entry in entries
                if _LINK_FAMILY is not None and entry.family == _LINK_FAMILY
            ),
            None,
        )

        interfaces.append(
            NetworkInterfaceInfo(
                name=name,
                kind=interface_kind(name),
                is_up=True,
                speed_mbps=stat.speed,
                mtu=stat.mtu,
                mac_address=mac or None,
                addresses=ipv4,
            )
        )

    logger.debug("Found %d active interface(s)", len(interfaces))
    return interfaces


def _is_loopback(name: str, entries: list, stat: object) -> bool:
    flags = getattr(stat, "flags", "") or ""
    if "loopback" in flags.split(","):
        return True
    if name == "lo" or name.startswith("lo0"):
        return True
    return any(
        entry.family == socket.AF_INET and entry.address.startswith("127.")
        for entry in entries
    )
