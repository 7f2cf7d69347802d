"""
=============================================================================
HTTP PROTOCOL COMPONENTS
=============================================================================

    http/
    ├── request.py       # Request line parsing, body fields
    ├── resolver.py      # URI → path under the content root
    ├── mime_types.py    # Extension → Content-Type
    ├── response.py      # Fixed-length and chunked framing
    └── status_codes.py  # HTTPStatus enum

=============================================================================
"""

from .status_codes import HTTPStatus
from .request import HTTPRequest, HTTPParseError, RequestParser, parse_request
from .resolver import ResolvedResource, ResourceResolver
from .response import (
    FrameResult,
    FramingMode,
    HTTPResponse,
    ResponseFramer,
    encode_chunk,
    error_response,
    not_found,
)

__all__ = [
    "HTTPStatus",
    "HTTPRequest",
    "HTTPParseError",
    "RequestParser",
    "parse_request",
    "ResolvedResource",
    "ResourceResolver",
    "FrameResult",
    "FramingMode",
    "HTTPResponse",
    "ResponseFramer",
    "encode_chunk",
    "error_response",
    "not_found",
]
