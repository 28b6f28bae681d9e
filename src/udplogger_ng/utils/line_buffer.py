from __future__ import annotations

import logging
from typing import List, Optional

# --- Allocation Constants ---
ALLOC_GRANULARITY = 4096

def round_up(size: int) -> int:
    """Rounds a byte count up to the next allocation block."""
    return ((size + ALLOC_GRANULARITY - 1) // ALLOC_GRANULARITY) * ALLOC_GRANULARITY

class LineBuffer:
    """
    Growable byte buffer used to reassemble newline-delimited records.

    Consumed bytes are skipped with a read cursor and only compacted away once
    they make up at least half of the storage, so draining many lines from one
    buffer never re-copies the untouched remainder for every line.

    `capacity` is an accounted size in whole allocation blocks; `reserve` and
    `shrink_to_fit` track it, but the bytearray itself is sized by Python.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._head = 0
        self.capacity = 0

    def __len__(self) -> int:
        return len(self._data) - self._head

    def __bool__(self) -> bool:
        return len(self._data) > self._head

    def __bytes__(self) -> bytes:
        return bytes(self._data[self._head:])

    def reserve(self, size: int) -> None:
        """Grows the accounted capacity so that `size` bytes fit."""
        if size > self.capacity:
            self.capacity = round_up(size)

    def append(self, chunk: bytes) -> None:
        """Appends raw bytes. MemoryError propagates to the caller."""
        self.reserve(len(self) + len(chunk))
        self._data += chunk

    def pop_lines(self) -> List[bytes]:
        """Removes and returns every complete line, terminators included."""
        lines: List[bytes] = []
        data = self._data
        start = self._head
        while True:
            end = data.find(b"\n", start)
            if end < 0:
                break
            lines.append(bytes(data[start:end + 1]))
            start = end + 1
        self._head = start
        self._compact()
        return lines

    def take_all(self) -> Optional[bytes]:
        """Removes and returns whatever is left, or None when empty."""
        if not self:
            return None
        rest = bytes(self._data[self._head:])
        self._data.clear()
        self._head = 0
        return rest

    def shrink_to_fit(self) -> None:
        """
        Drops consumed bytes and reduces capacity to the smallest block that
        holds the current content. Keeps the old storage if copying fails.
        """
        target = round_up(len(self))
        if target >= self.capacity and self._head == 0:
            return
        try:
            self._data = self._data[self._head:]
        except MemoryError:
            logging.debug(f"Could not shrink buffer of {len(self)} bytes, keeping {self.capacity}")
            return
        self._head = 0
        self.capacity = target

    def _compact(self) -> None:
        if self._head == len(self._data):
            self._data.clear()
            self._head = 0
        elif self._head * 2 >= len(self._data):
            del self._data[:self._head]
            self._head = 0
