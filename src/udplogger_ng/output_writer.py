from __future__ import annotations
import logging
import time
from typing import Optional

from udplogger_ng.core.rotation import RotatingLogFile
from udplogger_ng.core.session import Session
from udplogger_ng.stats import ReceiverStats
from udplogger_ng.utils.clock import local_time

def format_stamp(tm: time.struct_time) -> bytes:
    """Renders 'YYYY-MM-DD HH:MM:SS ' for the start of a record."""
    return (f"{tm.tm_year:04d}-{tm.tm_mon:02d}-{tm.tm_mday:02d} "
            f"{tm.tm_hour:02d}:{tm.tm_min:02d}:{tm.tm_sec:02d} ").encode("ascii")

class LogWriter:
    """Writes '<timestamp> <ip:port> <payload>' records into the rotating log file."""
    def __init__(self, rotation: RotatingLogFile, stats: Optional[ReceiverStats] = None):
        self.rotation = rotation
        self.stats = stats
        self._last_second: Optional[int] = None
        self._last_tm: Optional[time.struct_time] = None
        self._stamp = b""
        self._failing = False

    def stamp_for(self, timestamp: float) -> bytes:
        """
        Returns the rendered timestamp, recomputing it (and checking for a
        day change) only when the whole second differs from the last record.
        """
        second = int(timestamp)
        if second != self._last_second:
            tm = local_time(second, self._last_tm)
            self._last_tm = tm
            self._stamp = format_stamp(tm)
            self.rotation.ensure_current(second)
            self._last_second = second
        return self._stamp

    def emit(self, session: Session, line: bytes, timestamp: float):
        """Writes one record. A newline is added if `line` lacks one."""
        stamp = self.stamp_for(timestamp)
        record = stamp + session.prefix_bytes + line
        if not line.endswith(b"\n"):
            record += b"\n"
        if self._write(record) and self.stats:
            self.stats.lines_written += 1

    def write_marker(self, text: str):
        """Writes a bare line with no timestamp or sender prefix."""
        self._write(text.encode("utf-8") + b"\n")

    def _write(self, data: bytes) -> bool:
        handle = self.rotation.handle
        try:
            if handle is None:
                raise OSError("no log file is open")
            handle.write(data)
        except OSError as e:
            if self.stats:
                self.stats.write_errors += 1
            if not self._failing:
                logging.error(f"Failed to write to log file: {e}")
                self._failing = True
            return False
        if self._failing:
            logging.info("Writing to log file again")
            self._failing = False
        return True

    def flush(self):
        try:
            self.rotation.flush()
        except OSError as e:
            logging.warning(f"Failed to flush log file: {e}")

    def close(self):
        """Flushes and closes the current log file."""
        self.flush()
        self.rotation.close()
