import io
import socket
import struct

import pytest

from iprd.logger import IPRLogger
from iprd.offline import dump_pcap, main, read_pcap

SRC_MAC = "02:00:00:00:00:02"


def udp_frame(src="192.168.7.20", dport=14235):
    payload = f"{src},{SRC_MAC}".encode()
    udp = struct.pack("!HHHH", 40000, dport, 8 + len(payload), 0) + payload
    ip = struct.pack("!BBHHHBBH4s4s", 0x45, 0, 20 + len(udp), 0, 0, 64, 17, 0,
                     socket.inet_aton(src), socket.inet_aton("255.255.255.255")) + udp
    return bytes.fromhex("ffffffffffff020000000002") + b"\x08\x00" + ip


def write_pcap(path, frames):
    out = struct.pack("<IHHiIII", 0xA1B2C3D4, 2, 4, 0, 0, 65535, 1)
    for n, data in enumerate(frames):
        out += struct.pack("<IIII", 1_700_000_000 + n, 0, len(data), len(data)) + data
    path.write_bytes(out)


def test_read_pcap_returns_frames(tmp_path):
    frames = [udp_frame(), b"\x00" * 10]
    path = tmp_path / "cap.pcap"
    write_pcap(path, frames)
    read = list(read_pcap(path))
    assert [f.data for f in read] == frames
    assert read[0].timestamp.timestamp() == 1_700_000_000


def test_read_pcap_bad_magic(tmp_path):
    path = tmp_path / "bad.pcap"
    path.write_bytes(b"\x00" * 32)
    with pytest.raises(ValueError):
        list(read_pcap(path))


def test_dump_pcap_counts_valid(tmp_path):
    path = tmp_path / "cap.pcap"
    write_pcap(path, [udp_frame(), b"\x00" * 10, udp_frame()])
    stream = io.StringIO()
    assert dump_pcap(path, True, IPRLogger(stream)) == 1
    text = stream.getvalue()
    assert "failed to decode packet" in text
    assert "duplicate packet" in text


def test_main_requires_file():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 1


def test_main_runs(tmp_path):
    path = tmp_path / "cap.pcap"
    write_pcap(path, [udp_frame("192.168.7.21")])
    assert main(["-f", str(path)]) == 0