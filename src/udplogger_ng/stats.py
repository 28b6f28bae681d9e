from __future__ import annotations
import time
from collections import Counter
from typing import Dict

class ReceiverStats:
    def __init__(self):
        self.start_time = time.time()
        self.datagrams = 0
        self.bytes_received = 0
        self.rejected_datagrams = 0

        self.sessions_created = 0
        self.sessions_reclaimed = 0
        self.peak_sessions = 0

        self.lines_written = 0
        self.write_errors = 0
        self.forced_flushes: Dict[str, int] = Counter()

        self.rotations = 0
        self.rotation_failures = 0

    def add_datagram(self, size: int):
        self.datagrams += 1
        self.bytes_received += size

    def add_session(self, active: int):
        self.sessions_created += 1
        if active > self.peak_sessions:
            self.peak_sessions = active

    def add_forced_flush(self, reason: str):
        self.forced_flushes[reason] += 1

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def total_forced_flushes(self) -> int:
        return sum(self.forced_flushes.values())
