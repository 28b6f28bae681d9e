from __future__ import annotations
import logging
import time
from typing import Callable, Optional

# Used whenever the clock or the local time conversion cannot be read.
SENTINEL_TIME = 0
SENTINEL_TM = time.struct_time((1970, 1, 1, 0, 0, 0, 3, 1, 0))

def read_clock(clock: Callable[[], float]) -> int:
    """Returns whole seconds from `clock`, or SENTINEL_TIME if it fails."""
    try:
        return int(clock())
    except (OSError, OverflowError, ValueError) as e:
        logging.debug(f"Clock read failed: {e}")
        return SENTINEL_TIME

def local_time(timestamp: float, fallback: Optional[time.struct_time] = None) -> time.struct_time:
    """Converts to local broken-down time, falling back on failure."""
    try:
        return time.localtime(timestamp)
    except (OSError, OverflowError, ValueError):
        return fallback if fallback is not None else SENTINEL_TM
