"""
Unit tests for request line parsing and body field extraction.
"""

import pytest

from mandelserver.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    find_float_field,
    is_quit,
    parse_request,
    split_body,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self):
        """Test parsing a simple GET request."""
        raw = b"GET /index.html HTTP/1.1\r\nHost: localhost\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.method == "GET"
        assert request.uri == "/index.html"
        assert request.version == "HTTP/1.1"
        assert request.raw == raw

    def test_query_string_is_kept_in_uri(self):
        """The resolver strips queries, the parser doesn't."""
        request = parse_request(b"GET /cat.jpg?size=large HTTP/1.1\r\n\r\n")
        assert request.uri == "/cat.jpg?size=large"

    def test_extra_tokens_are_ignored(self):
        request = parse_request(b"GET /a.html HTTP/1.1 trailing junk\r\n\r\n")
        assert (request.method, request.uri, request.version) == ("GET", "/a.html", "HTTP/1.1")

    def test_bare_lf_line_endings(self):
        request = parse_request(b"POST /mandel HTTP/1.0\nHost: x\n\nx=1&y=2")
        assert request.method == "POST"
        assert request.version == "HTTP/1.0"

    def test_only_first_line_is_tokenized(self):
        """Tokens from the header lines never fill in a short request line."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("raw", [b"GET /index.html\r\n\r\n", b"   \r\n", b"hello"])
    def test_malformed_request_line(self, raw: bytes):
        """Test handling of malformed request line."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_parse_invalid_method(self):
        """Test that methods other than GET and POST are rejected."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"DELETE /index.html HTTP/1.1\r\n\r\n")

        assert exc_info.value.status_code == 405

    def test_method_is_case_sensitive(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"get /index.html HTTP/1.1\r\n\r\n")

    def test_request_is_immutable(self):
        request = parse_request(b"GET / HTTP/1.1\r\n\r\n")
        with pytest.raises(Exception):
            request.uri = "/other"


class TestQuitToken:
    """Tests for the quit control token."""

    def test_quit_prefix(self):
        assert is_quit(b"quit")
        assert is_quit(b"quit\r\n")
        assert is_quit(b"quitting time")

    def test_quit_is_case_sensitive(self):
        assert not is_quit(b"QUIT")
        assert not is_quit(b" quit")
        assert not is_quit(b"GET /quit HTTP/1.1\r\n\r\n")


class TestBodyFields:
    """Tests for locating x= / y= in the request body."""

    def test_split_body_crlf(self):
        assert split_body(b"POST / HTTP/1.1\r\nA: b\r\n\r\nx=1") == b"x=1"

    def test_split_body_without_headers_end(self):
        assert split_body(b"POST / HTTP/1.1\r\nA: b\r\n") == b""

    def test_find_float_field(self):
        body = b"x=0.5&y=-1.25"
        assert find_float_field(body, "x") == 0.5
        assert find_float_field(body, "y") == -1.25

    def test_atof_style_prefix(self):
        """Parsing stops at the first character that can't extend the number."""
        assert find_float_field(b"x=1.5abc", "x") == 1.5
        assert find_float_field(b"x=  2", "x") == 2.0
        assert find_float_field(b"x=3e-2&", "x") == pytest.approx(0.03)
        assert find_float_field(b"x=.25", "x") == 0.25
        assert find_float_field(b"x=+7.", "x") == 7.0

    def test_non_numeric_value_counts_as_missing(self):
        assert find_float_field(b"x=abc", "x") is None
        assert find_float_field(b"x=", "x") is None

    def test_missing_marker(self):
        assert find_float_field(b"y=1", "x") is None

    def test_coordinates_any_order(self):
        request = parse_request(
            b"POST /mandel HTTP/1.1\r\nContent-Type: text/plain\r\n\r\n"
            b"zoom=3\ny=-1.25\nx=0.5\n"
        )
        assert request.coordinates() == (0.5, -1.25)

    def test_coordinates_require_both(self):
        request = parse_request(b"POST /mandel HTTP/1.1\r\n\r\nx=0.5")
        assert request.float_field("x") == 0.5
        assert request.coordinates() is None

    def test_fields_in_headers_are_not_used(self):
        """Only the part after the blank line is searched."""
        request = parse_request(b"POST /mandel HTTP/1.1\r\nX-Hint: x=1 y=2\r\n\r\n")
        assert request.coordinates() is None

    def test_body_property(self):
        request = HTTPRequest("POST", "/mandel", "HTTP/1.1", raw=b"POST /mandel HTTP/1.1\r\n\r\nabc")
        assert request.body == b"abc"
