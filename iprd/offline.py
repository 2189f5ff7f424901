"""Command that validates the IP reports stored in a pcap file."""

from __future__ import annotations

import argparse
import os
import struct
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

from .logger import IPRLogger
from .packet import CapturedFrame, IPReportPacket, PacketError, parse_ip_report_packet
from .record import Record

_MAGICS = {
    b"\xd4\xc3\xb2\xa1": ("<", 1),
    b"\xa1\xb2\xc3\xd4": (">", 1),
    b"\x4d\x3c\xb2\xa1": ("<", 1000),
    b"\xa1\xb2\x3c\x4d": (">", 1000),
}


def read_pcap(path: str | os.PathLike[str]) -> Iterator[CapturedFrame]:
    """Yield the frames of a classic pcap file; raise ValueError if malformed."""
    with open(path, "rb") as handle:
        header = handle.read(24)
        if len(header) < 24 or header[:4] not in _MAGICS:
            raise ValueError("unknown file format")
        order, divisor = _MAGICS[header[:4]]
        link_type = struct.unpack(order + "I", header[20:24])[0] & 0x0FFFFFFF
        record = struct.Struct(order + "IIII")
        while True:
            raw = handle.read(record.size)
            if len(raw) < record.size:
                return
            seconds, fraction, included, original = record.unpack(raw)
            data = handle.read(included)
            if len(data) < included:
                return
            stamp = datetime.fromtimestamp(seconds, timezone.utc) + timedelta(
                microseconds=fraction / divisor
            )
            yield CapturedFrame(
                data,
                timestamp=stamp,
                length=original,
                capture_length=included,
                link_type=link_type,
            )


def dump_pcap(
    path: str | os.PathLike[str], debug: bool = False, logger: IPRLogger | None = None
) -> int:
    """Log every frame of path as a valid or invalid report; return the valid count."""
    log = logger if logger is not None else IPRLogger()
    record = Record(10)
    valid = 0
    for frame in read_pcap(path):
        if debug:
            log.debug("--- Dumped Packet ---")
            log.debug(frame.data.hex(" ") + "\n")
        try:
            report = IPReportPacket.from_frame(frame)
        except PacketError:
            log.error("failed to decode packet")
            continue
        try:
            parse_ip_report_packet(report, record=record)
        except PacketError as err:
            log.error(f"{report} - Not valid: {err}")
            continue
        valid += 1
        log.info("Valid IP Report!")
        if debug:
            log.debug(str(report))
            log.debug(f"Received UDP Payload ({len(report.datagram)}) -> {report.payload}")
    return valid


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="iprd-offline")
    parser.add_argument("-f", dest="file", default="", help="Path of the .pcap file.")
    parser.add_argument("-d", dest="debug", action="store_true",
                        help="Enable packet debugging output.")
    args = parser.parse_args(argv)
    log = IPRLogger()
    log.set_prefix("iprd-offline: ")
    if not args.file:
        log.fatal("missing -f <FILE>")
    path = args.file if os.path.isabs(args.file) else os.path.join(os.getcwd(), args.file)
    try:
        dump_pcap(path, args.debug, log)
    except (OSError, ValueError) as err:
        log.fatal(err)
    return 0