"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The handful of status codes this server can answer with.

    2xx SUCCESS        200  file found and streamed
    4xx CLIENT ERRORS  400  request line has fewer than three tokens
                       404  file could not be opened
                       405  verb is neither GET nor POST
    5xx SERVER ERRORS  500  unexpected fault before any byte was sent
                       502  movie generator failed or left no artifact

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.OK.phrase
        'OK'
    """

    OK = 200                        # File found and sent

    BAD_REQUEST = 400               # Malformed request line
    NOT_FOUND = 404                 # Resource can't be opened
    METHOD_NOT_ALLOWED = 405        # Verb outside GET/POST

    INTERNAL_SERVER_ERROR = 500     # Unexpected server error (catch-all)
    BAD_GATEWAY = 502               # External generator failed

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
}
