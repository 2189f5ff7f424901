"""TCP broadcaster that forwards report messages to subscribed clients."""

from __future__ import annotations

import itertools
import json
import queue
import socket
import threading
from dataclasses import dataclass

from .logger import IPRLogger

SUBSCRIBE_COMMAND = "iprd_subscribe"
SUBSCRIBE_TIMEOUT = 10.0


@dataclass
class TCPCommand:
    """A command line sent by a client to the broadcaster."""

    command: str = ""

    def to_json(self) -> bytes:
        return json.dumps({"command": self.command}, separators=(",", ":")).encode()

    @classmethod
    def from_json(cls, data: bytes | str) -> TCPCommand:
        """Decode a command; raise ValueError when it is not one."""
        obj = json.loads(data) or {}
        if not isinstance(obj, dict):
            raise ValueError("invalid command: expected a JSON object")
        command = obj.get("command") or ""
        if not isinstance(command, str):
            raise ValueError("invalid command: 'command' must be a string")
        return cls(command=command)


class IPRBroadcast:
    """Accepts TCP clients and sends each message line to every subscriber."""

    def __init__(
        self, logger: IPRLogger | None = None, port: int = 7788, host: str = ""
    ) -> None:
        self.logger = logger if logger is not None else IPRLogger()
        self.errors: queue.Queue[Exception] = queue.Queue()
        self._clients: dict[int, socket.socket] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._closed = threading.Event()
        self._sock = socket.create_server((host, port))
        self._sock.settimeout(0.5)

    @property
    def port(self) -> int:
        """The TCP port actually bound."""
        return self._sock.getsockname()[1]

    def listen(self) -> None:
        """Accept clients until close() is called."""
        while not self._closed.is_set():
            try:
                conn, _ = self._sock.accept()
            except TimeoutError:
                continue
            except OSError as exc:
                if self._closed.is_set():
                    break
                self.errors.put(exc)
                continue
            threading.Thread(target=self._serve, args=(conn,), daemon=True).start()

    def _serve(self, conn: socket.socket) -> None:
        client_id = next(self._ids)
        try:
            conn.settimeout(SUBSCRIBE_TIMEOUT)
            subscribed = False
            with conn.makefile("rb") as reader:
                for line in reader:
                    if subscribed:
                        continue
                    try:
                        cmd = TCPCommand.from_json(line)
                    except ValueError:
                        continue
                    if cmd.command == SUBSCRIBE_COMMAND:
                        conn.settimeout(None)
                        subscribed = True
                        with self._lock:
                            self._clients[client_id] = conn
                        host, port = conn.getpeername()[:2]
                        self.logger.info(f"accepted new connection from: {host}:{port}")
        except OSError:
            pass
        finally:
            with self._lock:
                self._clients.pop(client_id, None)
            conn.close()

    def send(self, msg: bytes) -> list[OSError]:
        """Send msg as one line to every subscriber; failed clients are dropped."""
        errors: list[OSError] = []
        line = bytes(msg) + b"\n"
        with self._lock:
            for client_id, conn in list(self._clients.items()):
                try:
                    conn.sendall(line)
                except OSError as exc:
                    conn.close()
                    del self._clients[client_id]
                    errors.append(exc)
        for exc in errors:
            self.errors.put(exc)
        return errors

    def close(self) -> None:
        """Stop accepting and disconnect every client."""
        self._closed.set()
        self._sock.close()
        with self._lock:
            for conn in self._clients.values():
                conn.close()
            self._clients.clear()