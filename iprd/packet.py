"""Decoding and validation of captured IP report packets."""

from __future__ import annotations

import json
import os
import struct
import time
import uuid
import zlib
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from .patterns import MSG_PATTERNS, MinerTypeHint
from .record import Record, RecordEntry

ZLIB_OFFSETS = (0, 8)
RECORD_MIN_AGE = 10_000
LINKTYPE_ETHERNET = 1

# 14235 is assumed Antminer, though other makes (Volcminer, Hammer) use it too.
MINER_PORTS: dict[int, MinerTypeHint] = {
    14235: MinerTypeHint.ANTMINER,
    11503: MinerTypeHint.ICERIVER,
    8888: MinerTypeHint.WHATSMINER,
    1314: MinerTypeHint.GOLDSHELL,
    18650: MinerTypeHint.SEALMINER,
    9999: MinerTypeHint.ELPHAPEX,
    12345: MinerTypeHint.AURADINE,
}

RECORD = Record(10)

_JSON_KEYS = {
    "timestamp": "timestamp", "packet_id": "packetID", "dst_port": "dstPort",
    "src_ip": "srcIP", "src_mac": "srcMAC", "miner_hint": "minerHint",
}


class PacketError(ValueError):
    """A captured frame is not a usable or valid IP report."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _unix_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def new_packet_id() -> str:
    """Return a new version 7 UUID as text."""
    millis = time.time_ns() // 1_000_000
    value = (millis & ((1 << 48) - 1)) << 80 | int.from_bytes(os.urandom(10), "big")
    value = value & ~(0xF << 76) | 0x7 << 76
    value = value & ~(0x3 << 62) | 0x2 << 62
    return str(uuid.UUID(int=value))


@dataclass
class CapturedFrame:
    """One captured link-layer frame together with its capture metadata."""

    data: bytes
    timestamp: datetime = field(default_factory=_now)
    length: int | None = None
    capture_length: int | None = None
    interface_index: int = 0
    link_type: int = LINKTYPE_ETHERNET

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        if self.capture_length is None:
            self.capture_length = len(self.data)
        if self.length is None:
            self.length = self.capture_length


@dataclass
class IPRBroadcastMessage:
    """The JSON message broadcast for every accepted IP report."""

    timestamp: int = 0
    packet_id: str = ""
    dst_port: int = 0
    src_ip: str = ""
    src_mac: str = ""
    miner_hint: str = ""

    def to_json(self) -> bytes:
        document = {_JSON_KEYS[k]: v for k, v in asdict(self).items()}
        document["minerHint"] = str(self.miner_hint)
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode()

    @classmethod
    def from_json(cls, data: bytes | str) -> IPRBroadcastMessage:
        try:
            obj = json.loads(data)
        except (ValueError, UnicodeDecodeError) as exc:
            raise PacketError(f"invalid broadcast message: {exc}") from exc
        if not isinstance(obj, dict):
            raise PacketError("invalid broadcast message: expected a JSON object")
        values = {}
        for attr, key in _JSON_KEYS.items():
            kind = int if attr in ("timestamp", "dst_port") else str
            value = obj.get(key)
            if value is not None and type(value) is not kind:
                raise PacketError(f"invalid broadcast message: field {key!r}")
            values[attr] = kind() if value is None else value
        if values["miner_hint"] in MinerTypeHint.__members__.values():
            values["miner_hint"] = MinerTypeHint(values["miner_hint"])
        return cls(**values)


def _ipv4(raw: bytes) -> str:
    return ".".join(map(str, raw))


def _mac(raw: bytes) -> str:
    return ":".join(f"{octet:02x}" for octet in raw)


@dataclass
class IPReportPacket:
    """A UDP datagram that may carry a miner's IP report."""

    timestamp: datetime = field(default_factory=_now)
    length: int = 0
    capture_length: int = 0
    interface_index: int = 0
    src_ip: str = ""
    dst_ip: str = ""
    src_mac: str = ""
    dst_mac: str = ""
    src_port: int = 0
    dst_port: int = 0
    datagram: bytes = b""
    payload: str = ""
    miner_hint: str = MinerTypeHint.UNKNOWN

    @classmethod
    def from_frame(cls, frame: CapturedFrame) -> IPReportPacket:
        """Decode an Ethernet/IPv4/UDP frame; raise PacketError otherwise."""
        data = frame.data
        if frame.link_type != LINKTYPE_ETHERNET or len(data) < 14:
            raise PacketError("invalid layer - Ethernet")
        dst_mac, src_mac = _mac(data[0:6]), _mac(data[6:12])
        (ethertype,) = struct.unpack_from("!H", data, 12)
        data = data[14:]
        while ethertype in (0x8100, 0x88A8) and len(data) >= 4:
            (ethertype,) = struct.unpack_from("!H", data, 2)
            data = data[4:]

        if ethertype != 0x0800 or len(data) < 20 or data[0] >> 4 != 4:
            raise PacketError("invalid layer - IPv4")
        header_length = (data[0] & 0x0F) * 4
        total_length, fragment = struct.unpack_from("!HH", data, 2)
        if header_length < 20 or len(data) < header_length:
            raise PacketError("invalid layer - IPv4")
        src_ip, dst_ip = _ipv4(data[12:16]), _ipv4(data[16:20])
        protocol = data[9]
        if total_length >= header_length:
            data = data[:total_length]
        data = data[header_length:]

        if protocol != 17 or fragment & 0x3FFF or len(data) < 8:
            raise PacketError("invalid layer - UDP")
        src_port, dst_port, udp_length = struct.unpack_from("!HHH", data)
        if 0 < udp_length < 8:
            raise PacketError("invalid layer - UDP")
        datagram = data[8:udp_length] if udp_length else data[8:]
        if not datagram:
            raise PacketError("empty payload")

        return cls(
            timestamp=frame.timestamp,
            length=frame.length,
            capture_length=frame.capture_length,
            interface_index=frame.interface_index,
            src_ip=src_ip,
            dst_ip=dst_ip,
            src_mac=src_mac,
            dst_mac=dst_mac,
            src_port=src_port,
            dst_port=dst_port,
            datagram=datagram,
        )

    def marshal(self) -> bytes:
        """Return the broadcast message for this packet as JSON bytes."""
        return IPRBroadcastMessage(
            timestamp=_unix_millis(self.timestamp),
            packet_id=new_packet_id(),
            dst_port=self.dst_port,
            src_ip=self.src_ip,
            src_mac=self.src_mac,
            miner_hint=self.miner_hint,
        ).to_json()

    def __str__(self) -> str:
        return (
            f"[IP: {self.src_ip} -> {self.dst_ip}, "
            f"MAC: {self.src_mac} -> {self.dst_mac}, "
            f"UDP: {self.src_port} -> {self.dst_port}, "
            f"Len: {self.capture_length}, Hint: {self.miner_hint}]"
        )


def _inflate(datagram: bytes) -> bytes:
    start = next(
        (o for o in ZLIB_OFFSETS if o < len(datagram) and datagram[o] == 0x78), None
    )
    if start is None:
        raise PacketError("failed to decode payload - invalid utf8")
    inflater = zlib.decompressobj()
    try:
        inflated = inflater.decompress(datagram[start:]) + inflater.flush()
    except zlib.error as exc:
        raise PacketError(f"failed to decompress payload - {exc}") from exc
    if not inflater.eof:
        raise PacketError("failed to read from zlib reader - unexpected EOF")
    return inflated


def parse_ip_report_packet(
    packet: IPReportPacket, *ignored_addrs: str, record: Record | None = None
) -> None:
    """Validate packet as an IP report, updating it and the record in place.

    Raises PacketError naming why the packet is rejected.
    """
    seen = RECORD if record is None else record

    if packet.src_mac in ignored_addrs:
        raise PacketError("ignored")

    packet.miner_hint = MINER_PORTS.get(packet.dst_port, packet.miner_hint)

    entry = seen.get(packet.src_ip)
    if (
        entry is not None
        and entry.src_mac == packet.src_mac
        and entry.miner_hint == packet.miner_hint
        and time.time_ns() // 1_000_000 - entry.updated_at <= RECORD_MIN_AGE
    ):
        raise PacketError("duplicate packet")

    try:
        packet.datagram.decode("utf-8")
    except UnicodeDecodeError:
        packet.datagram = _inflate(packet.datagram)

    packet.payload = packet.datagram.decode("utf-8", errors="replace")
    # Elphapex sends a fixed message that never holds the source IP.
    if packet.src_ip.encode() not in packet.datagram and not MSG_PATTERNS["DG"].match(
        packet.datagram
    ):
        raise PacketError("no source IP found in datagram")

    seen.add(
        packet.src_ip,
        RecordEntry(
            src_ip=packet.src_ip,
            src_mac=packet.src_mac,
            miner_hint=packet.miner_hint,
            created_at=_unix_millis(packet.timestamp),
        ),
    )