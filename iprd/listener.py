"""Capture of IP report frames on an interface and their validation."""

from __future__ import annotations

import queue
import socket
import struct
from datetime import datetime, timezone

from .config import IPRDConfig
from .interface import IPRInterface
from .logger import IPRLogger
from .packet import (
    RECORD,
    CapturedFrame,
    IPReportPacket,
    PacketError,
    parse_ip_report_packet,
)
from .patterns import MinerTypeHint

BPF_TEMPLATE = (
    "src host {} and (dst net 255 or dst net {}) and "
    "udp src portrange 1024-65535 and udp dst portrange 1024-49151"
)
SNAP_LEN = 1600

_ETH_P_ALL = 0x0003
_SOL_PACKET = 263
_PACKET_ADD_MEMBERSHIP = 1
_PACKET_MR_PROMISC = 1


class ListenerError(RuntimeError):
    """The capture handle could not be created or configured."""


def build_bpf_expression(prefix: str) -> str:
    """Return the capture filter expression for a two-octet network prefix."""
    return BPF_TEMPLATE.format(prefix, prefix)


def _in_prefix(address: str, prefix: str) -> bool:
    return address.startswith(prefix + ".")


def matches_filter(frame: CapturedFrame, network_prefix: str) -> bool:
    """Apply the capture filter to a frame in user space."""
    try:
        packet = IPReportPacket.from_frame(frame)
    except PacketError:
        return False
    if not _in_prefix(packet.src_ip, network_prefix):
        return False
    if packet.dst_ip.split(".")[0] != "255" and not _in_prefix(
        packet.dst_ip, network_prefix
    ):
        return False
    return 1024 <= packet.src_port <= 65535 and 1024 <= packet.dst_port <= 49151


class IPRListener:
    """Reads frames from an interface and queues broadcast messages."""

    def __init__(
        self, cfg: IPRDConfig, logger: IPRLogger | None, iface: IPRInterface
    ) -> None:
        self.cfg = cfg
        self.log = logger if logger is not None else IPRLogger()
        self.iface = iface
        self.record = RECORD
        self._queue: queue.Queue[bytes] = queue.Queue()
        self._sock: socket.socket | None = None
        self._prefix = iface.network_prefix()

    def broadcast(self) -> queue.Queue[bytes]:
        """Queue of messages ready for broadcasting."""
        return self._queue

    def activate(self) -> None:
        """Open a promiscuous raw capture socket on the interface."""
        family = getattr(socket, "AF_PACKET", None)
        if family is None:
            raise ListenerError("failed to create handle: raw capture unsupported")
        try:
            sock = socket.socket(family, socket.SOCK_RAW, socket.htons(_ETH_P_ALL))
        except OSError as exc:
            raise ListenerError(f"failed to create handle: {exc}") from exc
        try:
            sock.bind((self.iface.name, 0))
            index = socket.if_nametoindex(self.iface.name)
            mreq = struct.pack("iHH8s", index, _PACKET_MR_PROMISC, 0, b"")
            sock.setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, mreq)
        except OSError as exc:
            sock.close()
            raise ListenerError(f"failed to activate handle: {exc}") from exc
        self._sock = sock
        self.log.info(
            f"activate handle on interface: {self.iface.friendly_name} "
            f"({self.iface.mac_addr()})"
        )
        self.log.info(f"set BPF filter expression: {build_bpf_expression(self._prefix)}")
        if self.cfg.debug:
            self.log.debug("--- DEBUG OUTPUT ON ---")
        if self.cfg.filter:
            self.log.info("filter option is set: only broadcast known ports!")

    def handle_frame(self, frame: CapturedFrame) -> bytes | None:
        """Validate one frame; return its broadcast message or None."""
        try:
            report = IPReportPacket.from_frame(frame)
        except PacketError:
            return None
        try:
            parse_ip_report_packet(
                report, *self.cfg.ignore_addresses, record=self.record
            )
        except PacketError as err:
            if str(err) == "duplicate packet":
                self.log.warn(f"{report} - {err}")
            if self.cfg.debug:
                self.log.error(f"{report} - not valid: {err}")
                self.log.debug("--- PACKET DUMP ---")
                self.log.debug(frame.data.hex(" ") + "\n")
            return None
        if self.cfg.filter and report.miner_hint == MinerTypeHint.UNKNOWN:
            self.log.warn(f"received unknown IP Report {report}")
            return None
        self.log.info(f"received IP Report {report}")
        if self.cfg.debug:
            self.log.debug(f"UDP Payload ({report.capture_length}) -> {report.payload}")
        return report.marshal()

    def listen(self) -> None:
        """Read frames until the socket closes, queueing accepted reports."""
        if self._sock is None:
            raise ListenerError("handle is not activated")
        self.log.info("start listen...")
        sock = self._sock
        try:
            while True:
                try:
                    data = sock.recv(65535)
                except OSError:
                    break
                if not data:
                    break
                frame = CapturedFrame(
                    data[:SNAP_LEN],
                    timestamp=datetime.now(timezone.utc),
                    length=len(data),
                )
                if not matches_filter(frame, self._prefix):
                    continue
                msg = self.handle_frame(frame)
                if msg is not None:
                    self._queue.put(msg)
        finally:
            sock.close()
            self._sock = None