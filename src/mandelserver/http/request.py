"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

This server reads exactly one buffer per connection and looks at very
little of it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  POST /mandel HTTP/1.1\r\n          ← request line: 3 tokens used   │
    │  Host: localhost\r\n                ← headers: ignored              │
    │  Content-Type: application/x-...\r\n                                 │
    │  \r\n                               ← blank line ends the headers   │
    │  x=0.5&y=-1.25                      ← body: searched for x= and y=  │
    └─────────────────────────────────────────────────────────────────────┘

Two special inputs never become requests:

    b""        the peer closed the connection before sending anything
    b"quit..." the client asks the server to hang up this connection

=============================================================================
BODY FIELDS
=============================================================================

The dynamic route reads two numbers from the body. Each is found by
searching for its marker ("x=", "y=") and parsing the longest float that
starts right after it, the way C's atof() does:

    "x=0.5&y=-1.25"     → x = 0.5,  y = -1.25
    "y=2 junk x=  3e-2" → x = 0.03, y = 2.0
    "x=abc&y=1"         → x missing (nothing numeric after the marker;
                          atof() would have returned 0.0 here)

The fields can be in any order and surrounded by anything.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple


QUIT_TOKEN = b"quit"

VALID_METHODS = frozenset({"GET", "POST"})

# Longest float prefix, atof-style: optional leading whitespace, sign,
# digits with an optional fraction, optional exponent.
FLOAT_PATTERN = re.compile(rb"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class HTTPParseError(Exception):
    """
    Raised when the request line can't be turned into a request.

    Carries the HTTP status the client should receive:

        400 Bad Request        - fewer than three tokens
        405 Method Not Allowed - verb outside GET/POST
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed request.

    Built once from the connection's single read and never modified.

    Attributes:
        method: "GET" or "POST".
        uri: Raw request target, query string included.
        version: Protocol token, informational only.
        raw: The bytes the request was parsed from.
    """

    method: str
    uri: str
    version: str
    raw: bytes = field(default=b"", repr=False)

    @property
    def body(self) -> bytes:
        """Everything after the first blank line, or b"" if there is none."""
        return split_body(self.raw)

    def float_field(self, name: str) -> Optional[float]:
        """Value of the `name=` body field, or None when absent or not numeric."""
        return find_float_field(self.body, name)

    def coordinates(self) -> Optional[Tuple[float, float]]:
        """
        The (x, y) pair for the dynamic route.

        Returns None unless both fields are present.
        """
        x = self.float_field("x")
        y = self.float_field("y")
        if x is None or y is None:
            return None
        return x, y


def is_quit(data: bytes) -> bool:
    """Check for the case-sensitive "quit" control token."""
    return data.startswith(QUIT_TOKEN)


def split_body(data: bytes) -> bytes:
    """
    Return the part of `data` after the header block.

    Accepts both CRLF and bare LF line endings.
    """
    for separator in (b"\r\n\r\n", b"\n\n"):
        index = data.find(separator)
        if index != -1:
            return data[index + len(separator):]
    return b""


def find_float_field(data: bytes, name: str) -> Optional[float]:
    """
    Find `name=` in data and parse the float right after it.

    Only the first occurrence of the marker is considered.

    A marker followed by nothing numeric ("x=abc", "x=") counts as absent
    and returns None, so the dynamic route is skipped. C's atof() would
    return 0.0 for the same input.

    >>> find_float_field(b"x=abc", "x") is None
    True
    >>> find_float_field(b"x=0.5&y=-1.25", "y")
    -1.25
    >>> find_float_field(b"y=1", "x") is None
    True
    """
    marker = name.encode("ascii") + b"="
    index = data.find(marker)
    if index == -1:
        return None

    match = FLOAT_PATTERN.match(data, index + len(marker))
    if not match:
        return None
    return float(match.group(1))


class RequestParser:
    """
    Parses the request line out of a raw buffer.

    Only the first line is tokenized. Tokens beyond the third are ignored;
    fewer than three is a 400.

    Usage:
        parser = RequestParser()
        request = parser.parse(b"GET /index.html HTTP/1.1\\r\\n\\r\\n")
    """

    def __init__(self, valid_methods: frozenset = VALID_METHODS):
        self.valid_methods = valid_methods

    def parse(self, data: bytes) -> HTTPRequest:
        """
        Parse a buffer into an HTTPRequest.

        Raises:
            HTTPParseError: If the request line is malformed or the
                            method is not supported.
        """
        first_line = data.split(b"\n", 1)[0]
        tokens = first_line.decode("utf-8", errors="replace").split()

        if len(tokens) < 3:
            raise HTTPParseError(f"Malformed request line: {first_line[:80]!r}")

        method, uri, version = tokens[:3]

        if method not in self.valid_methods:
            raise HTTPParseError(f"Unsupported method: {method}", status_code=405)

        return HTTPRequest(method=method, uri=uri, version=version, raw=data)


def parse_request(data: bytes) -> HTTPRequest:
    """Convenience wrapper around RequestParser().parse()."""
    return RequestParser().parse(data)
