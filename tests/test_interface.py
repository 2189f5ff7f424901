import socket
from collections import namedtuple
from types import SimpleNamespace
from unittest import mock

import psutil
import pytest

from iprd.interface import (
    InterfaceCandidate,
    InterfaceError,
    InterfaceFlags,
    IPRInterface,
    build_interfaces,
    find_lan_interface,
    get_interface_by_index,
    get_interface_by_name,
    get_interfaces,
)

Addr = namedtuple("Addr", "family address netmask broadcast ptp")

VALID_FLAGS = (
    InterfaceFlags.RUNNING
    | InterfaceFlags.UP
    | InterfaceFlags.BROADCAST
    | InterfaceFlags.MULTICAST
)


def make_iface(description, ip="192.168.1.1", mac="aa:bb:cc:dd:ee:ff", flags=0):
    return IPRInterface(
        index=0,
        name="eth0",
        description=description,
        ipv4=ip,
        hardware_addr=mac,
        flags=flags,
    )


@pytest.mark.parametrize(
    ("description", "want"),
    [
        ("lan", True),
        ("LAN", True),
        ("Vlan", False),
        ("WAN", False),
        ("LAN1", True),
        ("", False),
    ],
)
def test_is_lan(description, want):
    assert make_iface(description).is_lan() is want


def test_build_interfaces_source_case():
    candidates = [
        InterfaceCandidate(
            name="eth0",
            description="LAN",
            flags=VALID_FLAGS,
            addresses=["192.168.5.1"],
            index=0,
        ),
        InterfaceCandidate(
            name="re0",
            description="WAN",
            flags=InterfaceFlags.RUNNING | InterfaceFlags.UP | InterfaceFlags.BROADCAST,
            addresses=["176.28.126.10"],
            index=1,
        ),
        InterfaceCandidate(
            name="lo",
            flags=InterfaceFlags.RUNNING | InterfaceFlags.UP | InterfaceFlags.LOOPBACK,
            addresses=["127.0.0.1"],
            index=2,
        ),
    ]
    interfaces = build_interfaces(candidates)
    assert len(interfaces) == 1
    assert interfaces[0].name == "eth0"
    assert interfaces[0].friendly_name == "eth0"
    assert interfaces[0].ip_addr() == "192.168.5.1"


@pytest.mark.parametrize(
    ("address", "kept"),
    [
        ("10.1.2.3", True),
        ("172.16.0.1", True),
        ("172.32.0.1", False),
        ("100.64.0.1", False),
        ("::ffff:192.168.7.7", True),
        ("fe80::1%eth0", False),
    ],
)
def test_private_address_selection(address, kept):
    candidate = InterfaceCandidate(name="eth0", addresses=[address], flags=VALID_FLAGS)
    if kept:
        assert len(build_interfaces([candidate])) == 1
    else:
        with pytest.raises(InterfaceError, match="no valid interfaces"):
            build_interfaces([candidate])


def test_first_private_address_wins():
    candidate = InterfaceCandidate(
        name="eth0",
        addresses=["fe80::1", "8.8.8.8", "10.0.0.5", "192.168.0.9"],
        flags=VALID_FLAGS,
    )
    assert build_interfaces([candidate])[0].ip_addr() == "10.0.0.5"


def test_build_interfaces_requires_running_and_broadcast():
    candidate = InterfaceCandidate(
        name="eth0", addresses=["10.0.0.5"], flags=InterfaceFlags.UP | InterfaceFlags.BROADCAST
    )
    with pytest.raises(InterfaceError, match="no valid interfaces to listen on"):
        build_interfaces([candidate])


def test_interface_accessors():
    iface = make_iface("LAN", ip="192.168.1.1", flags=VALID_FLAGS)
    assert iface.network_prefix() == "192.168"
    assert iface.mac_addr() == "aa:bb:cc:dd:ee:ff"
    assert iface.is_up() is True
    assert make_iface("LAN", flags=InterfaceFlags.RUNNING).is_up() is False


def test_interface_str():
    iface = make_iface("LAN")
    iface.friendly_name = "eth0"
    assert str(iface) == (
        '0: eth0 (eth0) Desc:"LAN"\n   Hardware:aa:bb:cc:dd:ee:ff\n   IPv4:192.168.1.1'
    )


def test_invalid_name_and_index():
    with pytest.raises(InterfaceError, match="invalid interface name"):
        get_interface_by_name("")
    with pytest.raises(InterfaceError, match="invalid interface index"):
        get_interface_by_index(0)


SYSTEM_ADDRS = {
    "testeth0": [
        Addr(socket.AF_INET, "192.168.9.2", "255.255.255.0", "192.168.9.255", None),
        Addr(psutil.AF_LINK, "AA-BB-CC-00-11-22", None, None, None),
    ],
    "testwan0": [Addr(socket.AF_INET, "203.0.113.4", "255.255.255.0", None, None)],
    "testlo": [Addr(socket.AF_INET, "127.0.0.1", "255.0.0.0", None, None)],
}
SYSTEM_STATS = {
    "testeth0": SimpleNamespace(isup=True, flags="up,broadcast,running,multicast"),
    "testwan0": SimpleNamespace(isup=True, flags="up,broadcast,running"),
    "testlo": SimpleNamespace(isup=True, flags="up,loopback,running"),
}
SYSTEM_INDEXES = {"testeth0": 3, "testwan0": 4, "testlo": 1}


@pytest.fixture
def system():
    with mock.patch("psutil.net_if_addrs", return_value=SYSTEM_ADDRS), mock.patch(
        "psutil.net_if_stats", return_value=SYSTEM_STATS
    ), mock.patch("socket.if_nametoindex", side_effect=SYSTEM_INDEXES.__getitem__):
        yield


def test_get_interfaces_from_system(system):
    interfaces = get_interfaces()
    assert [iface.name for iface in interfaces] == ["testeth0"]
    iface = interfaces[0]
    assert iface.index == 3
    assert iface.hardware_addr == "aa:bb:cc:00:11:22"
    assert iface.ip_addr() == "192.168.9.2"
    assert iface.is_up()


def test_get_interface_by_name_and_index(system):
    assert get_interface_by_name("testeth0").index == 3
    assert get_interface_by_index(3).name == "testeth0"
    with pytest.raises(InterfaceError, match="interface not found"):
        get_interface_by_name("testwan0")
    with pytest.raises(InterfaceError, match="interface not found"):
        get_interface_by_index(99)


def test_find_lan_interface_without_description(system):
    with pytest.raises(InterfaceError, match="interface not found"):
        find_lan_interface()