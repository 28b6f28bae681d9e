from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple

from udplogger_ng.utils.line_buffer import LineBuffer

Identity = Tuple[str, int]

def format_identity(identity: Identity) -> str:
    """Renders a sender address as ip:port."""
    host, port = identity
    return f"{host}:{port}"

@dataclass
class Session:
    """Reassembly state for one sender address."""
    identity: Identity
    display_prefix: str = ""
    pending: LineBuffer = field(default_factory=LineBuffer)
    first_byte_time: Optional[int] = None
    prefix_bytes: bytes = field(init=False, repr=False, default=b"")

    def __post_init__(self) -> None:
        if not self.display_prefix:
            self.display_prefix = format_identity(self.identity)
        # Encoded once so the writer never re-renders the prefix per line.
        self.prefix_bytes = self.display_prefix.encode("ascii", errors="replace") + b" "

    @property
    def has_pending(self) -> bool:
        return bool(self.pending)
