from __future__ import annotations

class ReceiverError(Exception):
    """Base class for receiver failures that end the process."""

class StartupError(ReceiverError):
    """The socket, log directory or first log file could not be set up."""

class ReceiverAborted(ReceiverError):
    """
    Raised after an allocation failure once pending data has been written
    out. Never caught inside the event loop.
    """
