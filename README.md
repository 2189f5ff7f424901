# iprd

`iprd` listens on a LAN interface for the "IP Report" UDP packets that ASIC
miners send when someone presses their IP Report button. It checks each
packet and works out which kind of miner sent it. It then sends a short JSON
message to every TCP client that has subscribed.

Miner kinds are recognised by the UDP destination port of the report:

| Port  | Hint         |
|-------|--------------|
| 14235 | `antminer`   |
| 11503 | `iceriver`   |
| 8888  | `whatsminer` |
| 1314  | `goldshell`  |
| 18650 | `sealminer`  |
| 9999  | `elphapex`   |
| 12345 | `auradine`   |

Any other port is reported as `unknown`.

A payload that is not valid UTF-8 is treated as zlib-compressed data. The
stream is expected to start either at the first byte or at byte 8, and it is
decompressed before the checks run.

A report is accepted only if its payload contains the sender's IP address. The
one exception is the fixed `DG_IPREPORT_ONLY` message.

A report counts as a duplicate, and is dropped, when it matches the last
accepted report from the same IP address within 10 seconds. It matches when
the MAC address and the miner hint are the same. The last 10 sender addresses
are remembered.

## Installation

```
pip install .
```

## Running the daemon

List the interfaces that can be listened on. An interface is listed if it is
running, can broadcast and has a private IPv4 address:

```
iprd -list
```

Listen on an interface and forward reports on TCP port 7788:

```
iprd -i eth0 -p 7788
```

Options:

- `-c FILE`: read the configuration from a TOML file. It overrides the other options.
- `-d`: print packet debugging output.
- `-a`: use the first interface whose description starts with `lan` or `LAN`. It overrides `-i`.
- `-filter`: forward only reports from known miner ports. `unknown` reports are left out.
- `-i NAME`: the interface to capture on (default `eth0`).
- `-p PORT`: the TCP port that reports are forwarded on (default `7788`).
- `-list`: list the interfaces that can be listened on, then exit.
- `-ignore MACS`: a comma-separated list of source MAC addresses to ignore.

The daemon exits with status 1 in these cases:

- the configuration cannot be read;
- no suitable interface is found;
- the chosen interface is not up;
- capture cannot be started.

### Configuration file

```toml
debug = false
auto = false
filter = true
listen_interface = "eth0"
forward_port = 7788
ignore_addrs = ["00:00:5e:00:53:01"]
```

Missing values fall back to the defaults shown above. `listen_interface` must
not be empty, and `forward_port` must be positive.

## Subscribing to reports

A client connects to the forward port. It must send this line within 10
seconds, or it is disconnected:

```json
{"command":"iprd_subscribe"}
```

After that, every accepted report arrives as one JSON object per line:

```json
{"timestamp":1700000000000,"packetID":"0190f0a2-0000-7000-8000-000000000000","dstPort":14235,"srcIP":"192.168.1.50","srcMAC":"00:00:5e:00:53:01","minerHint":"antminer"}
```

`packetID` is a fresh version 7 UUID for each message.

`iprd-client` is a small subscriber that logs every report it receives. It
connects to `127.0.0.1:7788` unless you give `-h HOST` and `-p PORT`. `HOST`
must be an IP address.

```
iprd-client
```

## Checking captures offline

`iprd-offline` reads a `.pcap` file and logs which packets are valid IP
Reports. Add `-d` to get a hex dump of every packet:

```
iprd-offline -f capture.pcap -d
```

## Using it as a library

```python
from iprd.config import config_from_file
from iprd.packet import CapturedFrame, IPReportPacket, PacketError, parse_ip_report_packet
from iprd.record import Record

cfg = config_from_file("/etc/iprd.conf")

seen = Record(10)
frame = CapturedFrame(raw_ethernet_bytes)
try:
    report = IPReportPacket.from_frame(frame)
    parse_ip_report_packet(report, *cfg.ignore_addresses, record=seen)
except PacketError as err:
    print("rejected:", err)
else:
    print(report, report.marshal())
```

`iprd.patterns` has decoders for the Goldshell and SealMiner JSON payloads:
`IPReportGoldshell.from_json` and `IPReportSealminer.from_json`.

## Limitations

- Live capture uses a promiscuous Linux `AF_PACKET` raw socket. It needs root
  or `CAP_NET_RAW`. On other systems `iprd` cannot start capture and exits.
- Packets are not filtered in the kernel. The filter expression that is logged
  at start-up is applied to each frame in Python instead.
- Interface descriptions, which `-a` relies on, are read from
  `/sys/class/net/<name>/ifalias`.
- `iprd-offline` reads classic pcap files only (microsecond or nanosecond
  timestamps). It does not read pcapng.
- Only Ethernet frames carrying IPv4/UDP are decoded. Frames with 802.1Q or
  802.1ad VLAN tags are decoded too. IPv6 and fragmented datagrams are not.