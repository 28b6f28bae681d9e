from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, Optional

from udplogger_ng.core.session import Identity, Session
from udplogger_ng.stats import ReceiverStats

class SessionRegistry:
    """
    Active sessions keyed by sender address, capped at `capacity` entries.

    When full, `on_full` is invoked once to make room before a newcomer is
    turned away.
    """

    def __init__(self, capacity: int, stats: Optional[ReceiverStats] = None,
                 on_full: Optional[Callable[[], object]] = None):
        self.capacity = capacity
        self.stats = stats
        self.on_full = on_full
        self._sessions: Dict[Identity, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(self._sessions.values())

    def __contains__(self, identity: object) -> bool:
        return identity in self._sessions

    def get(self, identity: Identity) -> Optional[Session]:
        return self._sessions.get(identity)

    def has_pending(self) -> bool:
        return any(session.has_pending for session in self._sessions.values())

    def find_or_create(self, identity: Identity) -> Optional[Session]:
        """Returns the sender's session, creating it if there is room. None means rejected."""
        session = self._sessions.get(identity)
        if session is not None:
            return session

        if len(self._sessions) >= self.capacity:
            if self.on_full:
                self.on_full()
            if len(self._sessions) >= self.capacity:
                logging.debug(f"Registry full ({self.capacity}). Dropping datagram from {identity[0]}:{identity[1]}")
                return None

        session = Session(identity)
        self._sessions[identity] = session
        logging.debug(f"Created session for {session.display_prefix} ({len(self._sessions)} active)")
        if self.stats:
            self.stats.add_session(len(self._sessions))
        return session

    def drop_idle(self) -> int:
        """Removes every session with nothing pending and compacts the index."""
        idle = [identity for identity, session in self._sessions.items() if not session.has_pending]
        if not idle:
            return 0
        for identity in idle:
            del self._sessions[identity]
        # dicts never give memory back on deletion; a copy is sized to what is left.
        self._sessions = dict(self._sessions)
        return len(idle)
