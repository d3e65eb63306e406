import socket
from types import SimpleNamespace
from unittest.mock import patch

import psutil
import pytest

import wifi_interface
from wifi_interface import NoInterfaceFound, is_wireless, select_wireless_interface


def addr(family, address):
    return SimpleNamespace(family=family, address=address, netmask=None, broadcast=None, ptp=None)


IPV4 = addr(socket.AF_INET, "192.168.1.20")
IPV6 = addr(socket.AF_INET6, "fe80::1")
LINK = addr(psutil.AF_LINK, "00:c0:ca:9a:1b:2c")


@pytest.fixture
def no_sysfs(tmp_path):
    return str(tmp_path / "missing")


def patch_interfaces(interfaces):
    return patch.object(wifi_interface.psutil, "net_if_addrs", return_value=interfaces)


def test_no_interfaces_fails(no_sysfs):
    with patch_interfaces({}):
        with pytest.raises(NoInterfaceFound):
            select_wireless_interface(sysfs_root=no_sysfs)


def test_interfaces_without_addresses_fail(no_sysfs):
    with patch_interfaces({"wlx00c0ca9a1b2c": [LINK]}):
        with pytest.raises(NoInterfaceFound):
            select_wireless_interface(sysfs_root=no_sysfs)


def test_no_wireless_name_fails(no_sysfs):
    with patch_interfaces({"lo": [IPV4], "enp3s0": [IPV4, IPV6]}):
        with pytest.raises(NoInterfaceFound):
            select_wireless_interface(sysfs_root=no_sysfs)


def test_single_wireless_name_is_selected(no_sysfs):
    interfaces = {"lo": [IPV4], "enp3s0": [IPV4], "wlx00c0ca9a1b2c": [LINK, IPV4]}
    with patch_interfaces(interfaces):
        assert select_wireless_interface(sysfs_root=no_sysfs) == "wlx00c0ca9a1b2c"


def test_ipv6_only_interface_is_a_candidate(no_sysfs):
    with patch_interfaces({"wlx1": [IPV6]}):
        assert select_wireless_interface(sysfs_root=no_sysfs) == "wlx1"


def test_first_matching_interface_wins(no_sysfs):
    with patch_interfaces({"wlxaaaa": [IPV4], "wlxbbbb": [IPV4]}):
        assert select_wireless_interface(sysfs_root=no_sysfs) == "wlxaaaa"


def test_default_pattern_needs_x_in_third_place(no_sysfs):
    with patch_interfaces({"wlan0": [IPV4]}):
        with pytest.raises(NoInterfaceFound):
            select_wireless_interface(sysfs_root=no_sysfs)


def test_pattern_is_configurable(no_sysfs):
    with patch_interfaces({"eth0": [IPV4], "wlan0": [IPV4]}):
        assert select_wireless_interface(pattern=r"^wlan\d+$", sysfs_root=no_sysfs) == "wlan0"


def test_sysfs_wireless_entry_is_preferred(tmp_path):
    (tmp_path / "eth0").mkdir()
    (tmp_path / "wlp2s0" / "wireless").mkdir(parents=True)
    with patch_interfaces({"eth0": [IPV4], "wlp2s0": [IPV4]}):
        assert select_wireless_interface(sysfs_root=str(tmp_path)) == "wlp2s0"


def test_sysfs_phy80211_entry_counts_as_wireless(tmp_path):
    (tmp_path / "wlan1" / "phy80211").mkdir(parents=True)
    assert is_wireless("wlan1", str(tmp_path))
    assert not is_wireless("eth0", str(tmp_path))


def test_sysfs_without_wireless_devices_fails(tmp_path):
    (tmp_path / "eth0").mkdir()
    (tmp_path / "wlx00").mkdir()
    with patch_interfaces({"eth0": [IPV4], "wlx00": [IPV4]}):
        with pytest.raises(NoInterfaceFound):
            select_wireless_interface(sysfs_root=str(tmp_path))


def test_explicit_interface_is_used(no_sysfs):
    with patch_interfaces({"eth0": [IPV4], "wlan0": [IPV4]}):
        assert select_wireless_interface(explicit="wlan0", sysfs_root=no_sysfs) == "wlan0"


def test_explicit_interface_without_address_fails(no_sysfs):
    with patch_interfaces({"eth0": [IPV4], "wlan0": [LINK]}):
        with pytest.raises(NoInterfaceFound):
            select_wireless_interface(explicit="wlan0", sysfs_root=no_sysfs)
