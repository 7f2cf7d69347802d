"""
=============================================================================
HTTP RESPONSE FRAMING
=============================================================================

Builds HTTP/1.1 responses and streams files to the client.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 200 OK\r\n                  ← status line                 │
    │  Content-Type: video/mp4\r\n          ← headers                     │
    │  Transfer-Encoding: chunked\r\n         (or Content-Length: N)      │
    │  Server: MandelServer/1.0\r\n                                        │
    │  Connection: close\r\n                                               │
    │  \r\n                                 ← blank line                  │
    │  <body>                               ← framed as announced         │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TWO WAYS TO FRAME A BODY
=============================================================================

The client must know where the body ends. HTTP/1.1 offers two answers:

FIXED LENGTH
────────────
    Content-Length: 13\r\n
    \r\n
    404 Not Found

    The size goes out before the body, so the whole body must be known
    up front. Good for small files: one read, one write.

CHUNKED
───────
    Transfer-Encoding: chunked\r\n
    \r\n
    10000\r\n               ← chunk size in hex (65536 bytes)
    <65536 bytes>\r\n
    3A2\r\n                 ← last partial block (930 bytes)
    <930 bytes>\r\n
    0\r\n                   ← zero-size chunk: end of body
    \r\n

    Each block read from disk goes out as soon as it is read, so memory
    use is bounded by one block no matter how large the file is. Used
    for big files (generated movies) and for anything whose size can't
    be determined before sending.

=============================================================================
FRAMING POLICY
=============================================================================

    "auto"
        size unknown                  → chunked
        size >  chunk_threshold       → chunked
        size <= chunk_threshold       → fixed length

    "fixed"
        size unknown                  → chunked
        size >  fixed_size_limit      → chunked
        size <= fixed_size_limit      → fixed length

    "chunked" always chunks. No mode buffers a body of unknown size or one
    above fixed_size_limit.

=============================================================================
"""

import os
import stat
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Dict, Optional

from .mime_types import ERROR_MIME_TYPE
from .resolver import ResolvedResource
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


CRLF = b"\r\n"
LAST_CHUNK = b"0\r\n\r\n"

NOT_FOUND_BODY = b"404 Not Found"


class FramingMode(Enum):
    """How the response body is delimited on the wire."""

    FIXED_LENGTH = "fixed"
    CHUNKED = "chunked"


@dataclass
class HTTPResponse:
    """
    A response status line, headers, and (for fixed-length frames) body.

    For chunked frames the body is not held here: the framer streams it
    straight from the file after sending head_bytes().
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    mode: FramingMode = FramingMode.FIXED_LENGTH
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_content_type(self, content_type: str) -> "HTTPResponse":
        """Set the Content-Type header."""
        return self.set_header("Content-Type", content_type)

    def set_body(self, body) -> "HTTPResponse":
        """Set the body. Strings are encoded as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def head_bytes(self, server_name: str = "MandelServer/1.0") -> bytes:
        """
        Serialize the status line and headers, blank line included.

        The framing header is derived from `mode`:
        - FIXED_LENGTH: Content-Length = len(body) unless already set
        - CHUNKED: Transfer-Encoding: chunked, Content-Length removed
        """
        response_headers = dict(self.headers)

        if self.mode is FramingMode.CHUNKED:
            response_headers.pop("Content-Length", None)
            response_headers["Transfer-Encoding"] = "chunked"
        else:
            response_headers.setdefault("Content-Length", str(len(self.body)))

        response_headers.setdefault("Server", server_name)

        # One request per connection, always
        response_headers["Connection"] = "close"

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + CRLF

    def to_bytes(self, server_name: str = "MandelServer/1.0") -> bytes:
        """
        Serialize a fixed-length response, head and body.

        Chunked responses have no in-memory body; use head_bytes() and
        encode_chunk() instead.
        """
        if self.mode is FramingMode.CHUNKED:
            raise ValueError("chunked responses are streamed, not serialized whole")
        return self.head_bytes(server_name) + self.body


@dataclass(frozen=True)
class FrameResult:
    """
    What actually went out on the wire.

    Attributes:
        status: Status code sent.
        mode: Framing used for the body.
        body_bytes: Payload bytes sent (excluding chunk framing).
        complete: False if a send failed part-way through.
    """

    status: HTTPStatus
    mode: FramingMode
    body_bytes: int
    complete: bool = True


# =============================================================================
# CHUNK ENCODING
# =============================================================================

def encode_chunk(data: bytes) -> bytes:
    """
    Frame one block as a chunk: HEX-SIZE CRLF DATA CRLF.

    >>> encode_chunk(b"hello")
    b'5\\r\\nhello\\r\\n'

    An empty block would be the terminator, so it is refused here.
    """
    if not data:
        raise ValueError("empty chunk; use LAST_CHUNK to end the body")
    return b"%X\r\n" % len(data) + data + CRLF


# =============================================================================
# ERROR RESPONSES
# =============================================================================
#
# All error bodies are short plain-text strings: "<code> <phrase>".
# The 404 body is exactly "404 Not Found".
#
# =============================================================================

def error_response(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """Create a plaintext error response with an exact Content-Length."""
    text = message or f"{int(status)} {status.phrase}"
    return (HTTPResponse(status=status)
        .set_content_type(ERROR_MIME_TYPE)
        .set_body(text))


def not_found() -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, NOT_FOUND_BODY.decode("ascii"))


def bad_request() -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST)


def method_not_allowed(allowed_methods) -> HTTPResponse:
    """405 with the Allow header listing the supported verbs."""
    return (error_response(HTTPStatus.METHOD_NOT_ALLOWED)
        .set_header("Allow", ", ".join(sorted(allowed_methods))))


def bad_gateway() -> HTTPResponse:
    return error_response(HTTPStatus.BAD_GATEWAY)


def internal_error() -> HTTPResponse:
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)


# =============================================================================
# THE FRAMER
# =============================================================================

class ResponseFramer:
    """
    Writes a resolved resource to a connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    frame_and_send() Flow                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   open(path, "rb") ──── fails ────► 404 Not Found (fixed length)    │
    │        │                                                             │
    │        ▼                                                             │
    │   fstat() → size (None if not a regular file)                        │
    │        │                                                             │
    │        ▼                                                             │
    │   select_mode(size)                                                  │
    │        │                                                             │
    │        ├── FIXED_LENGTH → read all, Content-Length, one write        │
    │        └── CHUNKED      → head, then read/encode/write per block,    │
    │                           then 0\\r\\n\\r\\n                            │
    │                                                                      │
    │   file closed on every path (with-statement)                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    The connection is NOT closed here; the dispatcher owns it.
    """

    def __init__(
        self,
        framing: str = "auto",
        chunk_threshold: int = 1024 * 1024,
        chunk_size: int = 64 * 1024,
        server_name: str = "MandelServer/1.0",
        fixed_size_limit: int = 64 * 1024 * 1024,
    ):
        self.framing = framing
        self.chunk_threshold = chunk_threshold
        self.chunk_size = chunk_size
        self.fixed_size_limit = fixed_size_limit
        self.server_name = server_name

    @classmethod
    def from_config(cls, config) -> "ResponseFramer":
        return cls(
            framing=config.framing,
            chunk_threshold=config.chunk_threshold,
            chunk_size=config.chunk_size,
            server_name=config.server_name,
            fixed_size_limit=config.fixed_size_limit,
        )

    def select_mode(self, size: Optional[int]) -> FramingMode:
        """
        Pick the framing for a body of `size` bytes (None = unknown).

        Unknown sizes and sizes above fixed_size_limit are chunked even when
        "fixed" is configured.
        """
        if self.framing == "chunked" or size is None or size > self.fixed_size_limit:
            return FramingMode.CHUNKED
        if self.framing == "fixed":
            return FramingMode.FIXED_LENGTH
        if size > self.chunk_threshold:
            return FramingMode.CHUNKED
        return FramingMode.FIXED_LENGTH

    def frame_and_send(
        self,
        resource: ResolvedResource,
        connection,
        content_type: Optional[str] = None,
    ) -> FrameResult:
        """
        Send `resource` over `connection`.

        Args:
            resource: Where the file is and what type it was inferred to be.
            connection: Anything with send_response(bytes) -> bool.
            content_type: Override for resource.content_type.

        Returns:
            A FrameResult describing what was sent.
        """
        try:
            stream = open(resource.path, "rb")
        except OSError as e:
            logger.debug(f"Cannot open {resource.path}: {e}")
            return self.send_error(connection, not_found())

        with stream:
            size = self._measure(stream)
            mode = self.select_mode(size)

            response = HTTPResponse(status=HTTPStatus.OK, mode=mode)
            response.set_content_type(content_type or resource.content_type)

            if mode is FramingMode.FIXED_LENGTH:
                return self._send_fixed(stream, size, response, connection)
            return self._send_chunked(stream, response, connection)

    def send_error(self, connection, response: HTTPResponse) -> FrameResult:
        """Send an in-memory (fixed-length) response, usually an error."""
        sent = connection.send_response(response.to_bytes(self.server_name))
        return FrameResult(
            status=response.status,
            mode=FramingMode.FIXED_LENGTH,
            body_bytes=len(response.body) if sent else 0,
            complete=sent,
        )

    @staticmethod
    def _measure(stream: BinaryIO) -> Optional[int]:
        """Size of a regular file, None for pipes, devices and the like."""
        try:
            info = os.fstat(stream.fileno())
        except OSError:
            return None
        if not stat.S_ISREG(info.st_mode):
            return None
        return info.st_size

    def _send_fixed(self, stream: BinaryIO, size: int, response: HTTPResponse, connection) -> FrameResult:
        # Content-Length is taken from what was actually read, so it stays
        # exact if the file shrank after fstat(). Growth past `size` is not sent.
        response.body = stream.read(size)
        sent = connection.send_response(response.to_bytes(self.server_name))
        return FrameResult(
            status=response.status,
            mode=FramingMode.FIXED_LENGTH,
            body_bytes=len(response.body) if sent else 0,
            complete=sent,
        )

    def _send_chunked(self, stream: BinaryIO, response: HTTPResponse, connection) -> FrameResult:
        body_bytes = 0

        if not connection.send_response(response.head_bytes(self.server_name)):
            return FrameResult(response.status, FramingMode.CHUNKED, 0, complete=False)

        while True:
            block = stream.read(self.chunk_size)
            if not block:
                break
            if not connection.send_response(encode_chunk(block)):
                logger.warning(f"Client went away after {body_bytes} bytes of chunked body")
                return FrameResult(response.status, FramingMode.CHUNKED, body_bytes, complete=False)
            body_bytes += len(block)

        complete = connection.send_response(LAST_CHUNK)
        return FrameResult(response.status, FramingMode.CHUNKED, body_bytes, complete=complete)
