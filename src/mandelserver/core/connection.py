"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one accepted client socket with the small API the
dispatcher needs: one bounded read, reliable writes, and a graceful close.

=============================================================================
ONE READ PER CONNECTION
=============================================================================

TCP is a byte stream, so a request *could* arrive split across several
recv() calls. This server deliberately does a single bounded read:

    ┌─────────────────────────────────────────────────────────────────────┐
    │   recv(read_buffer_size)                                            │
    │       │                                                              │
    │       ├── b""            peer closed before sending anything        │
    │       ├── b"quit..."     client asks us to hang up                  │
    │       └── b"GET / ..."   request line (+ whatever else arrived)     │
    └─────────────────────────────────────────────────────────────────────┘

Request lines split across packets are not reassembled. Browsers and curl
send the request line and headers in one segment, so in practice the
first read has everything the dispatcher looks at.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► PROCESSING ──────► WRITING
     │             │                                  │
     │             ▼                                  │
     └──────────► CLOSING ◄───────────────────────────┘
                    │
                    ▼
                  CLOSED

There is no keep-alive: every connection serves at most one request.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and double-close checks."""

    NEW = "new"                # Just accepted
    READING = "reading"        # Waiting for the request bytes
    PROCESSING = "processing"  # Resolving / generating
    WRITING = "writing"        # Sending the response
    CLOSING = "closing"        # Shutdown sequence in progress
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's address as returned by accept().
        id: Short unique identifier, used as a log prefix.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        bytes_sent: Total bytes written so far.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_sent: int = 0

    # Configuration (passed from ServerConfig)
    read_buffer_size: int = 100_000
    timeout: Optional[float] = None

    def __post_init__(self):
        # settimeout(None) puts the socket in blocking mode
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        """Get the client IP address ("-" for non-IP sockets)."""
        if isinstance(self.address, tuple) and self.address:
            return str(self.address[0])
        return "-"

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_once(self) -> bytes:
        """
        Read up to read_buffer_size bytes in a single recv() call.

        Returns:
            The bytes received. b"" means the peer closed the connection
            (or reset it, which is treated the same way).

        The read timeout applies to this call only. Afterwards the socket is
        back in blocking mode, so a slow reader can still receive a large
        response.

        Raises:
            TimeoutError: If a read timeout is configured and expires.
        """
        self.state = ConnectionState.READING
        try:
            return self.socket.recv(self.read_buffer_size)
        except socket.timeout:
            raise TimeoutError("Request read timeout")
        except (ConnectionResetError, BrokenPipeError):
            # Client disconnected abruptly
            return b""
        finally:
            if self.timeout is not None:
                self.socket.settimeout(None)

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send bytes to the client.

        Uses sendall() so a large chunk is never partially written.

        Returns:
            True if the send succeeded, False if the connection was lost.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.bytes_sent += len(data)
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN so the client sees end-of-response.
        2. Drain whatever the client still has in flight. Closing with
           unread data makes the kernel send RST, which can destroy the
           tail of the response on the client side.
        3. close() releases the descriptor.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        self.release()
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def release(self):
        """
        Close this process's descriptor without touching the TCP stream.

        A forked parent uses this after handing the socket to the child:
        shutdown() would end the conversation for the child as well.
        """
        try:
            self.socket.close()
        except OSError:
            pass
        self.state = ConnectionState.CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
