from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional, Tuple

from udplogger_ng.errors import StartupError
from udplogger_ng.stats import ReceiverStats
from udplogger_ng.utils.clock import local_time

Day = Tuple[int, int, int]

def log_filename(day: Day) -> str:
    year, month, mday = day
    return f"{year:04d}-{month:02d}-{mday:02d}.log"

class RotatingLogFile:
    """
    Keeps the date-named log file for the local day of the last record open.

    A failed open keeps the previous file in use. The failed day is
    remembered so the open is retried on the next day change rather than for
    every later record.
    """

    def __init__(self, log_dir: str | Path, stats: Optional[ReceiverStats] = None,
                 on_rotate: Optional[Callable[[], object]] = None,
                 opener: Callable[..., Any] = open):
        self.log_dir = Path(log_dir)
        self.stats = stats
        self.on_rotate = on_rotate
        self._opener = opener
        self.handle: Optional[BinaryIO] = None
        self.date_marker: Optional[Day] = None
        self._attempted: Optional[Day] = None
        self._last_tm = None

    @property
    def path(self) -> Optional[Path]:
        if self.date_marker is None:
            return None
        return self.log_dir / log_filename(self.date_marker)

    def open_initial(self, timestamp: float) -> BinaryIO:
        """Opens the file for `timestamp`'s day. Raises StartupError on failure."""
        handle = self.ensure_current(timestamp)
        if handle is None:
            raise StartupError(f"Can't create log file in {self.log_dir}")
        return handle

    def ensure_current(self, timestamp: float) -> Optional[BinaryIO]:
        """Returns the handle to write a record stamped `timestamp` to, rotating if the day changed."""
        tm = local_time(timestamp, self._last_tm)
        self._last_tm = tm
        day = (tm.tm_year, tm.tm_mon, tm.tm_mday)
        if day != self._attempted:
            self._attempted = day
            self._switch(day)
        return self.handle

    def _switch(self, day: Day) -> None:
        path = self.log_dir / log_filename(day)
        try:
            new_handle = self._opener(path, "ab")
        except OSError as e:
            if self.stats:
                self.stats.rotation_failures += 1
            if self.handle is not None:
                logging.warning(f"Could not open {path}: {e}. Still writing to {self.path}")
            else:
                logging.error(f"Could not open {path}: {e}")
            return

        previous = self.handle
        self.handle = new_handle
        self.date_marker = day
        if previous is None:
            logging.debug(f"Opened log file {path}")
            return

        logging.info(f"Rotated log file to {path}")
        try:
            previous.close()
        except OSError as e:
            logging.warning(f"Error closing previous log file: {e}")
        if self.stats:
            self.stats.rotations += 1
        if self.on_rotate:
            self.on_rotate()

    def flush(self) -> None:
        if self.handle is not None:
            self.handle.flush()

    def close(self) -> None:
        if self.handle is not None:
            self.handle.close()
            self.handle = None
