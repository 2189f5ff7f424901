"""Bounded first-in-first-out record of recently seen IP reports."""

from __future__ import annotations

import dataclasses
import time
from collections import OrderedDict
from dataclasses import dataclass


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class RecordEntry:
    """One remembered IP report, keyed by source IP in a Record."""

    src_ip: str = ""
    src_mac: str = ""
    miner_hint: str = ""
    created_at: int = 0
    updated_at: int = 0


class Record:
    """A capacity-bounded mapping that evicts its oldest key first."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._items: OrderedDict[str, RecordEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def get(self, key: str) -> RecordEntry | None:
        """Return a copy of the entry stored under key, or None."""
        entry = self._items.get(key)
        return None if entry is None else dataclasses.replace(entry)

    def add(self, key: str, entry: RecordEntry) -> None:
        """Create or refresh key; at capacity the oldest key is dropped."""
        stored = dataclasses.replace(entry, updated_at=_now_millis())
        if key in self._items:
            self._items.move_to_end(key)
            self._items[key] = stored
            return
        if len(self._items) >= self.capacity and self._items:
            self._items.popitem(last=False)
        self._items[key] = stored

    def remove(self, key: str) -> None:
        """Delete key, raising KeyError when it is absent."""
        try:
            del self._items[key]
        except KeyError:
            raise KeyError(f"key {key!r} not found") from None

    def clear(self) -> None:
        """Remove every entry."""
        self._items.clear()

    def display(self) -> None:
        """Print the length and entries of the record to stdout."""
        print(f"Record len: {len(self)}")
        for key, entry in self._items.items():
            print(f"{key}: {entry}, ", end="")