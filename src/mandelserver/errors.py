"""
=============================================================================
ERROR KINDS
=============================================================================

Every way a single connection can end badly, as a closed set.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     FAULT → CLIENT-VISIBLE RESULT                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   PEER_CLOSED          zero-byte read        close, nothing sent    │
    │   QUIT                 "quit" prefix         close, nothing sent    │
    │   READ_TIMEOUT         read timed out        close, nothing sent    │
    │   MALFORMED_REQUEST    < 3 tokens            400 Bad Request        │
    │   METHOD_NOT_ALLOWED   verb not GET/POST     405                    │
    │   NOT_FOUND            open() failed         404 Not Found          │
    │   MISSING_PARAMETERS   no x= or y=           logged, path served    │
    │   GENERATION_FAILED    generator failed      502 Bad Gateway        │
    │   INTERNAL             unexpected exception  500 (if nothing sent)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Setup faults (socket, bind, listen, accept) are not per-connection and are
raised as SetupError instead. They end the whole process.

=============================================================================
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Per-connection fault kinds."""

    PEER_CLOSED = "peer_closed"
    QUIT = "quit"
    READ_TIMEOUT = "read_timeout"
    MALFORMED_REQUEST = "malformed_request"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    NOT_FOUND = "not_found"
    MISSING_PARAMETERS = "missing_parameters"
    GENERATION_FAILED = "generation_failed"
    INTERNAL = "internal"

    @property
    def closes_silently(self) -> bool:
        """True for faults answered by closing the socket without a response."""
        return self in (ErrorKind.PEER_CLOSED, ErrorKind.QUIT, ErrorKind.READ_TIMEOUT)


class SetupError(Exception):
    """
    Raised when the listening socket cannot be created, bound, or used.

    Carries the failing stage ("socket", "bind", "listen", "accept") so the
    CLI can report what went wrong before exiting non-zero.
    """

    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
        self.cause = cause
