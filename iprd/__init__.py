"""Listener for ASIC miner IP Report packets, with TCP forwarding to subscribers and offline pcap checking."""

__version__ = "0.1.1"