"""Network interfaces suitable for listening for IP reports."""

from __future__ import annotations

import ipaddress
import re
import socket
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import IntFlag
from pathlib import Path

import psutil

_LAN_PATTERN = re.compile(r"^lan|^LAN")
_PRIVATE_V4 = tuple(
    ipaddress.ip_network(net) for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")
)


class InterfaceError(LookupError):
    """No suitable network interface could be found."""


class InterfaceFlags(IntFlag):
    """State flags of a network interface."""

    UP = 1
    BROADCAST = 2
    LOOPBACK = 4
    POINT_TO_POINT = 8
    MULTICAST = 16
    RUNNING = 32


_FLAG_NAMES = {
    "up": InterfaceFlags.UP,
    "broadcast": InterfaceFlags.BROADCAST,
    "loopback": InterfaceFlags.LOOPBACK,
    "pointopoint": InterfaceFlags.POINT_TO_POINT,
    "multicast": InterfaceFlags.MULTICAST,
    "running": InterfaceFlags.RUNNING,
}


def _private_ipv4(address: str) -> ipaddress.IPv4Address | None:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address):
        ip = ip.ipv4_mapped
    if ip is None or not any(ip in net for net in _PRIVATE_V4):
        return None
    return ip


@dataclass
class InterfaceCandidate:
    """A system interface as reported, before it is checked for use."""

    name: str
    addresses: list[str] = field(default_factory=list)
    description: str = ""
    index: int = 0
    hardware_addr: str = ""
    flags: InterfaceFlags = InterfaceFlags(0)
    friendly_name: str = ""


@dataclass
class IPRInterface:
    """A network interface that IP reports can be captured on."""

    index: int = 0
    name: str = ""
    friendly_name: str = ""
    description: str = ""
    ipv4: ipaddress.IPv4Address | None = None
    hardware_addr: str = ""
    flags: InterfaceFlags = InterfaceFlags(0)

    def __post_init__(self) -> None:
        if isinstance(self.ipv4, str):
            self.ipv4 = ipaddress.IPv4Address(self.ipv4)
        self.flags = InterfaceFlags(self.flags)

    def ip_addr(self) -> str:
        return "<nil>" if self.ipv4 is None else str(self.ipv4)

    def mac_addr(self) -> str:
        return self.hardware_addr

    def network_prefix(self) -> str:
        """Return the leading two octets of the IPv4 address."""
        return ".".join(self.ip_addr().split(".")[:2])

    def is_up(self) -> bool:
        return bool(self.flags & InterfaceFlags.UP)

    def is_lan(self) -> bool:
        """Whether the description marks this as the LAN interface."""
        return _LAN_PATTERN.match(self.description) is not None

    def __str__(self) -> str:
        return (
            f'{self.index}: {self.friendly_name} ({self.name}) Desc:"{self.description}"\n'
            f"   Hardware:{self.hardware_addr}\n"
            f"   IPv4:{self.ip_addr()}"
        )


def build_interfaces(candidates: Iterable[InterfaceCandidate]) -> list[IPRInterface]:
    """Keep candidates with a private IPv4 that are running and broadcast-capable."""
    required = InterfaceFlags.RUNNING | InterfaceFlags.BROADCAST
    interfaces = []
    for candidate in candidates:
        ipv4 = next(filter(None, map(_private_ipv4, candidate.addresses)), None)
        if ipv4 is None or candidate.flags & required != required:
            continue
        interfaces.append(
            IPRInterface(
                index=candidate.index,
                name=candidate.name,
                friendly_name=candidate.friendly_name or candidate.name,
                description=candidate.description,
                ipv4=ipv4,
                hardware_addr=candidate.hardware_addr,
                flags=candidate.flags,
            )
        )
    if not interfaces:
        raise InterfaceError("no valid interfaces to listen on")
    return interfaces


def _description(name: str) -> str:
    try:
        return (Path("/sys/class/net") / name / "ifalias").read_text().strip()
    except (OSError, ValueError):
        return ""


def _system_candidates() -> Iterator[InterfaceCandidate]:
    stats = psutil.net_if_stats()
    for name, entries in psutil.net_if_addrs().items():
        stat = stats.get(name)
        if stat is None or "/" in name:
            continue
        try:
            index = socket.if_nametoindex(name)
        except OSError:
            continue
        flags = InterfaceFlags(0)
        for flag_name in getattr(stat, "flags", "").split(","):
            flags |= _FLAG_NAMES.get(flag_name.strip(), InterfaceFlags(0))
        if not flags:
            if stat.isup:
                flags |= InterfaceFlags.UP | InterfaceFlags.RUNNING
            if any(getattr(entry, "broadcast", None) for entry in entries):
                flags |= InterfaceFlags.BROADCAST
        hardware = next(
            (
                e.address.replace("-", ":").lower()
                for e in entries
                if e.family == psutil.AF_LINK and e.address
            ),
            "",
        )
        yield InterfaceCandidate(
            name=name,
            addresses=[
                e.address for e in entries if e.family in (socket.AF_INET, socket.AF_INET6)
            ],
            description=_description(name),
            index=index,
            hardware_addr=hardware,
            flags=flags,
        )


def get_interfaces() -> list[IPRInterface]:
    """Return every system interface that can be listened on."""
    return build_interfaces(_system_candidates())


def get_interface_by_name(name: str) -> IPRInterface:
    if not name:
        raise InterfaceError("invalid interface name")
    for iface in get_interfaces():
        if name in (iface.name, iface.friendly_name):
            return iface
    raise InterfaceError("interface not found")


def get_interface_by_index(index: int) -> IPRInterface:
    if index <= 0:
        raise InterfaceError("invalid interface index")
    for iface in get_interfaces():
        if iface.index == index:
            return iface
    raise InterfaceError("interface not found")


def find_lan_interface() -> IPRInterface:
    """Return the first interface whose description marks it as LAN."""
    for iface in get_interfaces():
        if iface.is_lan():
            return iface
    raise InterfaceError("interface not found")