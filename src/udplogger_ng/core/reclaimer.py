from __future__ import annotations

import logging
from typing import Optional

from udplogger_ng.core.registry import SessionRegistry
from udplogger_ng.stats import ReceiverStats

class MemoryReclaimer:
    """
    Releases memory held for senders that have gone quiet.

    Rotation and registry pressure call `request()`; the event loop runs the
    pass after each drain cycle only if one was requested.
    """

    def __init__(self, registry: SessionRegistry, stats: Optional[ReceiverStats] = None):
        self.registry = registry
        self.stats = stats
        self.requested = False

    def request(self) -> None:
        self.requested = True

    def maybe_reclaim(self) -> int:
        if not self.requested:
            return 0
        return self.reclaim()

    def reclaim(self) -> int:
        """Drops empty sessions and shrinks the buffers of the rest. Returns sessions removed."""
        self.requested = False
        removed = self.registry.drop_idle()
        for session in self.registry:
            session.pending.shrink_to_fit()

        if removed:
            logging.debug(f"Reclaimed {removed} idle sessions, {len(self.registry)} still pending")
            if self.stats:
                self.stats.sessions_reclaimed += removed
        return removed
