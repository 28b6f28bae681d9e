from __future__ import annotations
import logging
import select
import socket
from typing import Optional, Tuple

from udplogger_ng.core.session import Identity
from udplogger_ng.errors import StartupError

MAX_DATAGRAM = 65536

class UdpTransport:
    """Non-blocking IPv4 UDP socket exposing receive and readiness-wait calls."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.sock.setblocking(False)

    @classmethod
    def open(cls, ip: str, port: int, rbuf: int) -> "UdpTransport":
        """Creates, tunes and binds the listener. Raises StartupError on any failure."""
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise StartupError(f"Can't create socket: {e}") from e

        try:
            set_receive_buffer(sock, rbuf)
            sock.bind((ip, port))
        except (OSError, OverflowError, ValueError) as e:
            sock.close()
            raise StartupError(f"Can't bind to {ip}:{port} : {e}") from e
        except StartupError:
            sock.close()
            raise
        return cls(sock)

    @property
    def address(self) -> Tuple[str, int]:
        return self.sock.getsockname()

    @property
    def receive_buffer_size(self) -> int:
        return self.sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)

    def wait_readable(self, timeout_ms: Optional[int]) -> bool:
        """Blocks until a datagram is waiting or `timeout_ms` passes. None waits forever."""
        timeout = None if timeout_ms is None else timeout_ms / 1000.0
        try:
            readable, _, _ = select.select([self.sock], [], [], timeout)
        except InterruptedError:
            return False
        return bool(readable)

    def receive_nonblocking(self) -> Optional[Tuple[Identity, bytes]]:
        """Returns (sender, payload) or None if nothing usable is waiting."""
        try:
            payload, addr = self.sock.recvfrom(MAX_DATAGRAM)
        except (BlockingIOError, InterruptedError):
            return None
        except OSError as e:
            logging.debug(f"recvfrom failed: {e}")
            return None

        if not payload or not isinstance(addr, tuple) or len(addr) != 2:
            return None
        return (addr[0], addr[1]), payload

    def close(self):
        self.sock.close()

def set_receive_buffer(sock: socket.socket, size: int) -> int:
    """
    Requests `size` bytes of kernel receive buffer, using SO_RCVBUFFORCE
    where available so the system limit can be exceeded. Returns the size the
    kernel actually granted.
    """
    force = getattr(socket, "SO_RCVBUFFORCE", None)
    applied = False
    if force is not None:
        try:
            sock.setsockopt(socket.SOL_SOCKET, force, size)
            applied = True
        except OSError:
            logging.debug("SO_RCVBUFFORCE not permitted, falling back to SO_RCVBUF")
    if not applied:
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, size)
        except OSError as e:
            raise StartupError(f"Can't set receive buffer size: {e}") from e
    try:
        return sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)
    except OSError as e:
        raise StartupError(f"Can't get receive buffer size: {e}") from e
