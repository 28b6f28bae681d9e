from __future__ import annotations
import logging
import time
from typing import Any, Callable, Optional, Protocol, Tuple

from udplogger_ng.config import ReceiverConfig
from udplogger_ng.core import reassembler
from udplogger_ng.core.reclaimer import MemoryReclaimer
from udplogger_ng.core.registry import SessionRegistry
from udplogger_ng.core.rotation import RotatingLogFile
from udplogger_ng.core.session import Identity, Session
from udplogger_ng.errors import ReceiverAborted
from udplogger_ng.output_writer import LogWriter
from udplogger_ng.stats import ReceiverStats
from udplogger_ng.utils.clock import read_clock

# Poll interval while some sender has an unterminated line.
PENDING_WAIT_MS = 1000
ABORT_MARKER = "[aborted due to memory allocation failure]"

class Transport(Protocol):
    def wait_readable(self, timeout_ms: Optional[int]) -> bool: ...
    def receive_nonblocking(self) -> Optional[Tuple[Identity, bytes]]: ...
    def close(self) -> None: ...

class Receiver:
    """
    Single-threaded loop turning datagrams into per-sender log records.

    Each cycle flushes the log file, waits for the socket, force-flushes
    senders whose partial line has gone stale, then drains datagrams until
    the socket is empty or the wall-clock second changes.
    """

    def __init__(self, config: ReceiverConfig, transport: Transport,
                 clock: Callable[[], float] = time.time,
                 opener: Callable[..., Any] = open):
        self.config = config
        self.transport = transport
        self._clock = clock
        self.stats = ReceiverStats()
        self.registry = SessionRegistry(config.clients, stats=self.stats)
        self.reclaimer = MemoryReclaimer(self.registry, stats=self.stats)
        self.registry.on_full = self.reclaimer.reclaim
        self.rotation = RotatingLogFile(config.log_dir, stats=self.stats,
                                        on_rotate=self.reclaimer.request, opener=opener)
        self.writer = LogWriter(self.rotation, stats=self.stats)

    def now(self) -> int:
        return read_clock(self._clock)

    def start(self):
        """Opens today's log file. Raises StartupError if that is impossible."""
        self.rotation.open_initial(self.now())

    def run(self):
        """Runs until the process is stopped or ReceiverAborted is raised."""
        while True:
            self.run_once()

    def run_once(self):
        self.writer.flush()
        self.transport.wait_readable(PENDING_WAIT_MS if self.registry.has_pending() else None)
        now = self.now()
        self.scan_timeouts(now)
        self.drain(now)
        self.reclaimer.maybe_reclaim()

    def scan_timeouts(self, now: int) -> int:
        """Force-flushes every session whose partial line is at least `timeout` seconds old."""
        flushed = 0
        for session in self.registry:
            if session.has_pending and now - session.first_byte_time >= self.config.timeout:
                logging.debug(f"Flushing stale partial line from {session.display_prefix}")
                self.write_session(session, forced=True)
                self.stats.add_forced_flush("timeout")
                flushed += 1
        return flushed

    def drain(self, now: int) -> int:
        """Handles datagrams until none are waiting or the second rolls over."""
        handled = 0
        while self.now() == now:
            received = self.transport.receive_nonblocking()
            if received is None:
                break
            identity, payload = received
            self.handle_datagram(identity, payload, now)
            handled += 1
        return handled

    def handle_datagram(self, identity: Identity, payload: bytes, now: int):
        session = self.registry.find_or_create(identity)
        if session is None:
            self.stats.rejected_datagrams += 1
            return
        self.stats.add_datagram(len(payload))

        try:
            reassembler.append(session, payload, now)
        except MemoryError:
            self.flush_all_and_abort()

        if b"\n" in payload:
            self.write_session(session, forced=False)
        if len(session.pending) >= self.config.wbuf:
            logging.debug(f"{session.display_prefix} reached {len(session.pending)} bytes without a newline")
            self.write_session(session, forced=True)
            self.stats.add_forced_flush("oversize")

    def write_session(self, session: Session, forced: bool):
        """Writes the session's complete lines, plus the partial tail when forced."""
        timestamp = session.first_byte_time
        if timestamp is None:
            return
        for line in reassembler.extract_complete_lines(session):
            self.writer.emit(session, line, timestamp)
        if forced:
            tail = reassembler.force_flush(session)
            if tail is not None:
                self.writer.emit(session, tail, timestamp)

    def flush_all_and_abort(self):
        """Writes out every pending buffer and the abort marker, then raises ReceiverAborted."""
        logging.critical("Memory allocation failed while buffering data. Flushing and aborting.")
        for session in list(self.registry):
            if not session.has_pending:
                continue
            try:
                self.write_session(session, forced=True)
                self.stats.add_forced_flush("abort")
            except MemoryError:
                logging.error(f"Could not flush {session.display_prefix} before abort")
        self.writer.write_marker(ABORT_MARKER)
        self.writer.flush()
        raise ReceiverAborted("aborted due to memory allocation failure")

    def shutdown(self):
        """Writes every pending partial line and closes the log file and socket."""
        for session in list(self.registry):
            if session.has_pending:
                self.write_session(session, forced=True)
                self.stats.add_forced_flush("shutdown")
        self.writer.close()
        self.transport.close()
