"""Command that runs the IP report daemon."""

from __future__ import annotations

import argparse
import threading

from .broadcast import IPRBroadcast
from .config import ConfigError, IPRDConfig, config_from_file
from .interface import (
    InterfaceError,
    find_lan_interface,
    get_interface_by_name,
    get_interfaces,
)
from .listener import IPRListener, ListenerError
from .logger import IPRLogger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="iprd", description="ASIC miner IP report listener")
    parser.add_argument("-c", dest="config", default="",
                        help="Path to config file. Overrides any other supplied flags.")
    parser.add_argument("-d", dest="debug", action="store_true",
                        help="Switch to enable packet debugging output.")
    parser.add_argument("-a", dest="auto", action="store_true",
                        help="Use the interface described as 'lan' or 'LAN'. Overrides -i.")
    parser.add_argument("-filter", dest="filter", action="store_true",
                        help="Only broadcast known ports/miner types.")
    parser.add_argument("-i", dest="interface", default="eth0",
                        help="Name of interface to listen/capture on.")
    parser.add_argument("-p", dest="port", type=int, default=7788,
                        help="TCP broadcast port for forwarding packet data.")
    parser.add_argument("-list", dest="list", action="store_true",
                        help="List all available network interfaces to listen on.")
    parser.add_argument("-ignore", dest="ignore", default="",
                        help="Comma separated MAC addresses to ignore packets from.")
    return parser


def _forward(listener: IPRListener, broadcaster: IPRBroadcast) -> None:
    messages = listener.broadcast()
    while True:
        broadcaster.send(messages.get())


def _report_errors(broadcaster: IPRBroadcast, log: IPRLogger) -> None:
    while True:
        log.error(broadcaster.errors.get())


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log = IPRLogger()
    try:
        if args.list:
            for iface in get_interfaces():
                print(iface)
            return 0

        cfg = IPRDConfig(
            debug=args.debug,
            auto=args.auto,
            filter=args.filter,
            listen_interface=args.interface,
            forward_port=args.port,
            ignore_addresses=args.ignore.split(","),
        )
        if args.config:
            cfg = config_from_file(args.config)

        if cfg.auto:
            iface = find_lan_interface()
        else:
            iface = get_interface_by_name(cfg.listen_interface)
        if not iface.is_up():
            log.fatal(f"interface {iface.friendly_name} is not marked as UP")

        log.info("start IPReporter Daemon...")
        listener = IPRListener(cfg, log, iface)
        listener.activate()
        broadcaster = IPRBroadcast(log, cfg.forward_port)
    except (ConfigError, InterfaceError, ListenerError, OSError) as err:
        log.fatal(err)

    threading.Thread(target=broadcaster.listen, daemon=True).start()
    threading.Thread(target=_forward, args=(listener, broadcaster), daemon=True).start()
    threading.Thread(target=_report_errors, args=(broadcaster, log), daemon=True).start()
    log.info(f"set tcp forwarding -> :{cfg.forward_port}")
    log.info("successfully started iprd!")
    try:
        listener.listen()
    finally:
        broadcaster.close()
    return 0