import io

import pytest
from rich.console import Console

from udplogger_ng.__main__ import ERROR, INTERRUPT, serve
from udplogger_ng.core import reassembler
from udplogger_ng.core.receiver import ABORT_MARKER, PENDING_WAIT_MS
from udplogger_ng.errors import ReceiverAborted

from conftest import local_ts, read_log

TODAY = "2024-03-10.log"
ALICE = ("10.0.0.1", 6665)
BOB = ("10.0.0.2", 6665)

def test_complete_lines_are_written_with_prefix(make_receiver, transport, tmp_path):
    receiver = make_receiver()
    transport.send(ALICE, b"hello\nwor")
    receiver.run_once()
    receiver.writer.flush()

    assert read_log(tmp_path, TODAY) == ["2024-03-10 12:00:00 10.0.0.1:6665 hello"]
    assert bytes(receiver.registry.get(ALICE).pending) == b"wor"
    assert receiver.stats.datagrams == 1
    assert receiver.stats.lines_written == 1

def test_senders_are_reassembled_independently(make_receiver, transport, tmp_path):
    receiver = make_receiver()
    transport.send(ALICE, b"alice ")
    transport.send(BOB, b"bob ")
    transport.send(ALICE, b"done\n")
    transport.send(BOB, b"done\n")
    receiver.run_once()
    receiver.writer.flush()

    assert read_log(tmp_path, TODAY) == [
        "2024-03-10 12:00:00 10.0.0.1:6665 alice done",
        "2024-03-10 12:00:00 10.0.0.2:6665 bob done",
    ]

def test_wait_is_bounded_only_while_data_is_pending(make_receiver, transport):
    receiver = make_receiver()
    receiver.run_once()
    transport.send(ALICE, b"partial")
    receiver.run_once()
    receiver.run_once()
    assert transport.waits == [None, None, PENDING_WAIT_MS]

def test_lines_are_stamped_with_first_byte_arrival(make_receiver, transport, clock, tmp_path):
    receiver = make_receiver()
    transport.send(ALICE, b"slow ")
    receiver.run_once()
    clock.now += 3
    transport.send(ALICE, b"line\n")
    receiver.run_once()
    receiver.writer.flush()
    assert read_log(tmp_path, TODAY) == ["2024-03-10 12:00:00 10.0.0.1:6665 slow line"]

def test_stale_partial_line_is_flushed_once(make_receiver, transport, clock, tmp_path):
    receiver = make_receiver(timeout=10)
    transport.send(ALICE, b"no newline")
    receiver.run_once()

    clock.now += 9
    receiver.run_once()
    assert receiver.registry.get(ALICE).pending

    clock.now += 1
    receiver.run_once()
    clock.now += 20
    receiver.run_once()
    receiver.writer.flush()

    assert read_log(tmp_path, TODAY) == ["2024-03-10 12:00:00 10.0.0.1:6665 no newline"]
    assert not receiver.registry.get(ALICE).pending
    assert receiver.stats.forced_flushes["timeout"] == 1

def test_oversized_buffer_is_forced_out(make_receiver, transport, tmp_path):
    receiver = make_receiver(wbuf=1024)
    transport.send(ALICE, b"x" * 600)
    transport.send(ALICE, b"y" * 600)
    transport.send(ALICE, b"tail\n")
    receiver.run_once()
    receiver.writer.flush()

    lines = read_log(tmp_path, TODAY)
    assert lines == [
        "2024-03-10 12:00:00 10.0.0.1:6665 " + "x" * 600 + "y" * 600,
        "2024-03-10 12:00:00 10.0.0.1:6665 tail",
    ]
    assert receiver.stats.forced_flushes["oversize"] == 1

def test_new_sender_is_dropped_when_registry_is_full(make_receiver, transport, tmp_path):
    receiver = make_receiver(clients=10)
    for port in range(10):
        transport.send(("10.0.0.1", port), b"waiting")
    transport.send(BOB, b"dropped\n")
    receiver.run_once()
    receiver.writer.flush()

    assert len(receiver.registry) == 10
    assert BOB not in receiver.registry
    assert receiver.stats.rejected_datagrams == 1
    assert read_log(tmp_path, TODAY) == []

    transport.send(("10.0.0.1", 0), b"\n")
    transport.send(BOB, b"admitted\n")
    receiver.run_once()
    receiver.writer.flush()
    assert read_log(tmp_path, TODAY) == [
        "2024-03-10 12:00:00 10.0.0.1:0 waiting",
        "2024-03-10 12:00:00 10.0.0.2:6665 admitted",
    ]

def test_drain_stops_when_the_second_changes(make_receiver, transport, clock):
    receiver = make_receiver()
    transport.send(ALICE, b"queued\n")
    assert receiver.drain(int(clock.now) - 1) == 0
    assert len(transport.queue) == 1
    assert receiver.drain(int(clock.now)) == 1

def test_rotation_across_midnight(make_receiver, transport, clock, tmp_path):
    clock.now = local_ts(2024, 1, 31, 23, 59, 59)
    receiver = make_receiver()
    transport.send(ALICE, b"old day\n")
    receiver.run_once()
    clock.now = local_ts(2024, 2, 1, 0, 0, 1)
    transport.send(ALICE, b"new day\n")
    receiver.run_once()
    receiver.shutdown()

    assert read_log(tmp_path, "2024-01-31.log") == ["2024-01-31 23:59:59 10.0.0.1:6665 old day"]
    assert read_log(tmp_path, "2024-02-01.log") == ["2024-02-01 00:00:01 10.0.0.1:6665 new day"]
    assert receiver.stats.rotations == 1
    assert len(receiver.registry) == 0

def test_allocation_failure_flushes_and_aborts(make_receiver, transport, tmp_path, monkeypatch):
    receiver = make_receiver()
    transport.send(ALICE, b"unfinished")
    receiver.run_once()

    def out_of_memory(session, data, now):
        raise MemoryError

    monkeypatch.setattr(reassembler, "append", out_of_memory)
    transport.send(BOB, b"too much")
    with pytest.raises(ReceiverAborted):
        receiver.run_once()

    assert read_log(tmp_path, TODAY) == [
        "2024-03-10 12:00:00 10.0.0.1:6665 unfinished",
        ABORT_MARKER,
    ]

def test_shutdown_writes_pending_and_closes(make_receiver, transport, tmp_path):
    receiver = make_receiver()
    transport.send(ALICE, b"last words")
    receiver.run_once()
    receiver.shutdown()

    assert read_log(tmp_path, TODAY) == ["2024-03-10 12:00:00 10.0.0.1:6665 last words"]
    assert transport.closed
    assert receiver.rotation.handle is None
    assert receiver.stats.forced_flushes["shutdown"] == 1

def test_broken_clock_falls_back_to_sentinel(make_receiver):
    receiver = make_receiver()

    def broken():
        raise OSError("clock unavailable")

    receiver._clock = broken
    assert receiver.now() == 0

def test_unexpected_loop_error_flushes_pending(make_receiver, transport, tmp_path, monkeypatch):
    receiver = make_receiver()
    transport.send(ALICE, b"partial evidence")
    receiver.run_once()

    def broken_wait(timeout_ms):
        raise OSError("select failed")

    monkeypatch.setattr(transport, "wait_readable", broken_wait)
    console = Console(file=io.StringIO())
    assert serve(receiver, console) == ERROR

    assert read_log(tmp_path, TODAY) == ["2024-03-10 12:00:00 10.0.0.1:6665 partial evidence"]
    assert transport.closed
    assert receiver.rotation.handle is None
    assert "select failed" in console.file.getvalue()

def test_interrupt_flushes_pending_and_reports(make_receiver, transport, tmp_path, monkeypatch):
    receiver = make_receiver()
    transport.send(ALICE, b"cut short")
    receiver.run_once()

    def interrupted(timeout_ms):
        raise KeyboardInterrupt

    monkeypatch.setattr(transport, "wait_readable", interrupted)
    console = Console(file=io.StringIO(), width=100)
    assert serve(receiver, console) == INTERRUPT
    assert read_log(tmp_path, TODAY) == ["2024-03-10 12:00:00 10.0.0.1:6665 cut short"]
    assert "Forced Flushes:" in console.file.getvalue()
