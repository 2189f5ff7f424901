"""Miner type hints, report message patterns and vendor payload models."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class MinerTypeHint(StrEnum):
    """Best guess of the miner make behind an IP report."""

    UNKNOWN = "unknown"
    ANTMINER = "antminer"
    ICERIVER = "iceriver"
    WHATSMINER = "whatsminer"
    GOLDSHELL = "goldshell"
    SEALMINER = "sealminer"
    ELPHAPEX = "elphapex"
    AURADINE = "auradine"


VALID_IP = re.compile(
    rb"\b(?:(?:2(?:[0-4][0-9]|5[0-5])|[0-1]?[0-9]?[0-9])\.){3}"
    rb"(?:(?:2([0-4][0-9]|5[0-5])|[0-1]?[0-9]?[0-9]))\b"
)
VALID_MAC = re.compile(rb"([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})")

MSG_PATTERNS: dict[str, re.Pattern[bytes]] = {
    "Common": re.compile(rb"^" + VALID_IP.pattern + rb"," + VALID_MAC.pattern),
    "IR": re.compile(rb"^addr:" + VALID_IP.pattern),
    "BT": re.compile(rb"^IP:" + VALID_IP.pattern + rb"MAC:" + VALID_MAC.pattern),
    "DG": re.compile(rb"^DG_IPREPORT_ONLY"),
}


class PayloadError(ValueError):
    """A report payload could not be decoded."""


def _loads(data: bytes | str) -> Any:
    try:
        return json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise PayloadError(f"failed to unmarshal payload: {exc}") from exc


def _fields(data: Any, mapping: dict[str, tuple[str, type | None]]) -> dict[str, Any]:
    """Pick JSON keys case-insensitively; null or missing gives the zero value."""
    if not isinstance(data, dict):
        raise PayloadError("expected a JSON object")
    folded = {key.casefold(): value for key, value in data.items()}
    result = {}
    for attr, (key, kind) in mapping.items():
        value = data[key] if key in data else folded.get(key.casefold())
        if kind is not None:
            if value is None:
                value = kind()
            elif type(value) is not kind:
                raise PayloadError(f"field {key!r}: expected {kind.__name__}")
        result[attr] = value
    return result


@dataclass
class IPReportGoldshell:
    """JSON payload of a Goldshell IP report."""

    version: str = ""
    ip_address: str = ""
    dhcp: str = ""
    model: str = ""
    ctrl_board_sn: str = ""
    mac_address: str = ""
    netmask: str = ""
    gateway: str = ""
    board_sns: Any = None
    dns: Any = None
    serial: str = ""
    time: str = ""
    led_status: bool = False

    @classmethod
    def from_json(cls, data: bytes | str) -> IPReportGoldshell:
        obj = _loads(data)
        if obj is None:
            return cls()
        return cls(**_fields(obj, {
            "version": ("version", str), "ip_address": ("ip", str),
            "dhcp": ("dhcp", str), "model": ("model", str),
            "ctrl_board_sn": ("ctrlsn", str), "mac_address": ("mac", str),
            "netmask": ("mask", str), "gateway": ("gateway", str),
            "board_sns": ("cpbsn", None), "dns": ("dns", None),
            "serial": ("boxsn", str), "time": ("time", str),
            "led_status": ("ledstatus", bool),
        }))


@dataclass
class SealMinerBoard:
    """One hash board listed in a SealMiner report."""

    serial: str = ""
    bin_version: int = 0
    bin_number: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SealMinerBoard:
        return cls(**_fields(data, {
            "serial": ("SN", str), "bin_version": ("BinVer", int),
            "bin_number": ("BinNum", int),
        }))


@dataclass
class SealMinerInfo:
    """Miner description block of a SealMiner report."""

    mac_address: str = ""
    type: str = ""
    firmware: str = ""
    ctrl_board: str = ""
    interface_count: int = 0
    upgrade: int = 0
    ctrl_board_sn: str = ""
    rated_power: int = 0
    power_limit: int = 0
    boards: list[SealMinerBoard] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SealMinerInfo:
        values = _fields(data, {
            "mac_address": ("MAC", str), "type": ("Type", str),
            "firmware": ("Firmware", str), "ctrl_board": ("CtrlBoardVersion", str),
            "interface_count": ("NetInterfaceCnt", int),
            "upgrade": ("UpgradeStatus", int), "ctrl_board_sn": ("MainBoardSN", str),
            "rated_power": ("RatedInputPower", int),
            "power_limit": ("InputPowerLimit", int), "boards": ("BoardSNArray", list),
        })
        values["boards"] = [
            SealMinerBoard() if item is None else SealMinerBoard.from_dict(item)
            for item in values["boards"]
        ]
        return cls(**values)


@dataclass
class SealMinerInterface:
    """One network interface block of a SealMiner report."""

    interface: str = ""
    active: bool = False
    dhcp: bool = False
    ip_address: str = ""
    netmask: str = ""
    gateway: str = ""
    dns1: str = ""
    dns2: str = ""
    auto_reboot: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SealMinerInterface:
        return cls(**_fields(data, {
            "interface": ("Interface", str), "active": ("Active", bool),
            "dhcp": ("DHCP", bool), "ip_address": ("IPV4", str),
            "netmask": ("Netmask", str), "gateway": ("Gateway", str),
            "dns1": ("DNS1", str), "dns2": ("DNS2", str),
            "auto_reboot": ("AutoReboot", bool),
        }))


@dataclass
class IPReportSealminer:
    """JSON payload of a SealMiner IP report."""

    info: SealMinerInfo = field(default_factory=SealMinerInfo)
    interfaces: list[SealMinerInterface] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: bytes | str) -> IPReportSealminer:
        """Decode the loosely formed array of seven JSON objects."""
        raw = data.encode() if isinstance(data, str) else bytes(data)
        raw = raw.replace(rb"\x00", b"").replace(b"}{", b"}, {")
        raw = raw.replace(b"TRUE", b"true").replace(b"FALSE", b"false")

        elements = _loads(raw) or []
        if not isinstance(elements, list):
            raise PayloadError("failed to unmarshal payload: expected a JSON array")
        if len(elements) != 7:
            raise PayloadError(f"expected 7 elements in array, got {len(elements)}")
        if elements[1] is None:
            raise PayloadError("failed to unmarshal miner info: missing")
        return cls(
            info=SealMinerInfo.from_dict(elements[1]),
            interfaces=[
                SealMinerInterface() if item is None else SealMinerInterface.from_dict(item)
                for item in elements[2:4]
            ],
        )