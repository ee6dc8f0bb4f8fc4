"""Tests for local interface enumeration."""

import socket
from types import SimpleNamespace
from unittest.mock import patch

import psutil
import pytest

from netan.errors import NetworkInterfaceError
from netan.interfaces import interface_kind, list_interfaces
from netan.models import InterfaceAddress


def _addr(family: int, address: str, netmask: str | None = None) -> SimpleNamespace:
    """Mimic a psutil ``snicaddr`` entry."""
    return SimpleNamespace(
        family=family, address=address, netmask=netmask, broadcast=None, ptp=None
    )


def _stat(
    isup: bool = True,
    speed: int = 1000,
    mtu: int = 1500,
    flags: str = "up,broadcast,running,multicast",
) -> SimpleNamespace:
    """Mimic a psutil ``snicstats`` entry."""
    return SimpleNamespace(isup=isup, duplex=2, speed=speed, mtu=mtu, flags=flags)


_ADDRS = {
    "lo": [_addr(socket.AF_INET, "127.0.0.1", "255.0.0.0")],
    "eth0": [
        _addr(socket.AF_INET, "192.168.1.10", "255.255.255.0"),
        _addr(socket.AF_INET6, "fe80::1"),
        _addr(psutil.AF_LINK, "aa:bb:cc:dd:ee:ff"),
    ],
    "wlan0": [_addr(socket.AF_INET, "10.0.0.7", "255.255.0.0")],
    "eth1": [_addr(socket.AF_INET, "172.16.0.1", "255.255.0.0")],
}

_STATS = {
    "lo": _stat(flags="up,loopback,running"),
    "eth0": _stat(),
    "wlan0": _stat(speed=0),
    "eth1": _stat(isup=False),
}


class TestListInterfaces:
    """list_interfaces() filters and maps psutil's interface tables."""

    @patch("netan.interfaces.psutil.net_if_stats", return_value=_STATS)
    @patch("netan.interfaces.psutil.net_if_addrs", return_value=_ADDRS)
    def test_skips_loopback_and_down(self, _addrs: patch, _stats: patch) -> None:
        names = [i.name for i in list_interfaces()]

        assert names == ["eth0", "wlan0"]

    @patch("netan.interfaces.psutil.net_if_stats", return_value=_STATS)
    @patch("netan.interfaces.psutil.net_if_addrs", return_value=_ADDRS)
    def test_maps_fields(self, _addrs: patch, _stats: patch) -> None:
        eth0 = list_interfaces()[0]

        assert eth0.kind == "ethernet"
        assert eth0.is_up is True
        assert eth0.speed_mbps == 1000
        assert eth0.mtu == 1500
        assert eth0.mac_address == "aa:bb:cc:dd:ee:ff"
        assert eth0.addresses == (InterfaceAddress("192.168.1.10", "255.255.255.0"),)

    @patch("netan.interfaces.psutil.net_if_stats", return_value=_STATS)
    @patch("netan.interfaces.psutil.net_if_addrs", return_value=_ADDRS)
    def test_wireless_kind(self, _addrs: patch, _stats: patch) -> None:
        wlan0 = list_interfaces()[1]

        assert wlan0.kind == "wireless"
        assert wlan0.mac_address is None

    @patch("netan.interfaces.psutil.net_if_stats", return_value={})
    @patch("netan.interfaces.psutil.net_if_addrs", return_value=_ADDRS)
    def test_missing_stats_means_skipped(self, _addrs: patch, _stats: patch) -> None:
        assert list_interfaces() == []

    @patch("netan.interfaces.psutil.net_if_addrs")
    def test_os_error_raises(self, mock_addrs: patch) -> None:
        mock_addrs.side_effect = OSError("permission denied")

        with pytest.raises(NetworkInterfaceError, match="permission denied"):
            list_interfaces()


class TestInterfaceKind:
    @pytest.mark.parametrize(
        ("name", "kind"),
        [
            ("eth0", "ethernet"),
            ("enp3s0", "ethernet"),
            ("wlp2s0", "wireless"),
            ("Wi-Fi", "wireless"),
            ("tun0", "tunnel"),
            ("wg0", "tunnel"),
            ("ppp0", "ppp"),
            ("docker0", "virtual"),
            ("br-1a2b3c", "virtual"),
        ],
    )
    def test_kind(self, name: str, kind: str) -> None:
        assert interface_kind(name) == kind
