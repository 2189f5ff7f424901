"""Example client that subscribes to a running daemon and prints reports."""

from __future__ import annotations

import argparse
import ipaddress
import logging
import socket
from collections.abc import Iterator

from .broadcast import SUBSCRIBE_COMMAND, TCPCommand
from .packet import IPRBroadcastMessage, PacketError

_log = logging.getLogger(__name__)


def subscribe(host: str = "127.0.0.1", port: int | str = 7788) -> Iterator[IPRBroadcastMessage]:
    """Subscribe to the daemon and yield each broadcast message received."""
    try:
        ipaddress.ip_address(host)
    except ValueError:
        raise ValueError("invalid IP address") from None
    with socket.create_connection((host, int(port))) as conn:
        _log.info("Sending subscribe command...")
        conn.sendall(TCPCommand(SUBSCRIBE_COMMAND).to_json() + b"\n")
        local, remote = conn.getsockname(), conn.getpeername()
        _log.info("Connected: %s:%s <-> %s:%s", remote[0], remote[1], local[0], local[1])
        with conn.makefile("rb") as reader:
            for line in reader:
                try:
                    yield IPRBroadcastMessage.from_json(line)
                except PacketError as err:
                    _log.error("error unmarshalling json: %s", err)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="iprd-client", add_help=False)
    parser.add_argument("-h", dest="host", default="127.0.0.1",
                        help="Host address of the iprd instance.")
    parser.add_argument("-p", dest="port", default="7788",
                        help="Configured TCP forward port of iprd.")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    try:
        for msg in subscribe(args.host, args.port):
            _log.info("Received: [%s] -- TYPE:%s,IP:%s,MAC:%s",
                      msg.packet_id, msg.miner_hint, msg.src_ip, msg.src_mac)
    except ValueError as err:
        _log.error("%s", err)
        return 1
    except OSError as err:
        _log.error("error connecting: %s", err)
        return 1
    _log.info("connection closed by server")
    return 0