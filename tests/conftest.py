from __future__ import annotations

import time
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional, Tuple

import pytest

from udplogger_ng.config import ReceiverConfig
from udplogger_ng.core.receiver import Receiver

def local_ts(year: int, month: int, day: int, hour: int = 12, minute: int = 0, second: int = 0) -> int:
    """Epoch seconds for a wall-clock time in the local time zone."""
    return int(time.mktime((year, month, day, hour, minute, second, 0, 0, -1)))

class FakeClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

class FakeTransport:
    """Hands out queued datagrams and records every wait timeout it was given."""
    def __init__(self):
        self.queue: Deque[Tuple[Tuple[str, int], bytes]] = deque()
        self.waits: List[Optional[int]] = []
        self.closed = False

    def send(self, sender: Tuple[str, int], payload: bytes):
        self.queue.append((sender, payload))

    def wait_readable(self, timeout_ms: Optional[int]) -> bool:
        self.waits.append(timeout_ms)
        return bool(self.queue)

    def receive_nonblocking(self):
        if not self.queue:
            return None
        return self.queue.popleft()

    def close(self):
        self.closed = True

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(local_ts(2024, 3, 10, 12, 0, 0))

@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()

@pytest.fixture
def make_receiver(tmp_path: Path, clock: FakeClock, transport: FakeTransport):
    def _make(**options) -> Receiver:
        config = ReceiverConfig(log_dir=str(tmp_path), **options)
        receiver = Receiver(config, transport, clock=clock)
        receiver.start()
        return receiver
    return _make

def read_log(tmp_path: Path, name: str) -> List[str]:
    return (tmp_path / name).read_bytes().decode("utf-8").splitlines()
