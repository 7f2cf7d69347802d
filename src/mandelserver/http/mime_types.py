"""
=============================================================================
CONTENT TYPE INFERENCE
=============================================================================

Maps a file extension to the Content-Type header value.

The table is deliberately tiny and closed. Anything not listed, including a
path with no extension at all, is served as HTML:

    ┌──────────────┬──────────────┐
    │  Extension   │  MIME Type   │
    ├──────────────┼──────────────┤
    │  .jpg        │  image/jpeg  │
    │  .mp4        │  video/mp4   │
    │  (anything)  │  text/html   │
    └──────────────┴──────────────┘

Matching is case-sensitive: "photo.JPG" is text/html. No content sniffing.

=============================================================================
"""

import posixpath


MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".mp4": "video/mp4",
}

DEFAULT_MIME_TYPE = "text/html"

# Used for the in-memory error bodies (404, 400, 502, ...)
ERROR_MIME_TYPE = "text/plain"


def get_extension(path: str) -> str:
    """
    Return the extension of the last path segment, dot included.

    Examples:
        >>> get_extension("httpdocs/img/cat.jpg")
        '.jpg'

        >>> get_extension("httpdocs/v1.2/readme")
        ''
    """
    return posixpath.splitext(path)[1]


def get_content_type(path: str) -> str:
    """
    Get the Content-Type header value for a file.

    Examples:
        >>> get_content_type("httpdocs/mandel.mp4")
        'video/mp4'

        >>> get_content_type("httpdocs/photo.JPG")
        'text/html'
    """
    return MIME_TYPES.get(get_extension(path), DEFAULT_MIME_TYPE)
