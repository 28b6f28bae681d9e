from __future__ import annotations

from typing import List, Optional

from udplogger_ng.core.session import Session

def append(session: Session, data: bytes, now: int) -> None:
    """
    Appends a datagram payload to the session's pending buffer.
    Stamps the session when this is the first byte of a new accumulation.
    A MemoryError from the buffer is left to the caller.
    """
    if not data:
        return
    if not session.pending:
        session.first_byte_time = now
    session.pending.append(data)

def extract_complete_lines(session: Session) -> List[bytes]:
    """Removes every newline-terminated line from the front of the buffer."""
    lines = session.pending.pop_lines()
    if not session.pending:
        session.first_byte_time = None
    return lines

def force_flush(session: Session) -> Optional[bytes]:
    """Returns the incomplete trailing line, if any, and empties the buffer."""
    tail = session.pending.take_all()
    session.first_byte_time = None
    return tail
