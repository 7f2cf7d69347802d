"""
Unit tests for URI → filesystem resolution and content types.
"""

import pytest

from mandelserver.http.mime_types import get_content_type, get_extension
from mandelserver.http.resolver import ResolvedResource, ResourceResolver, strip_query


class TestStripQuery:

    def test_no_query(self):
        assert strip_query("/index.html") == "/index.html"

    def test_strips_from_last_question_mark(self):
        assert strip_query("/a?b?c") == "/a?b"
        assert strip_query("/cat.jpg?") == "/cat.jpg"


class TestResourceResolver:
    """Tests for ResourceResolver.resolve()."""

    def test_prefixes_content_root(self, content_root):
        resolver = ResourceResolver(str(content_root))
        resource = resolver.resolve("/index.html")

        assert resource.path == f"{content_root}/index.html"
        assert resource.content_type == "text/html"
        assert resource.exists is True

    @pytest.mark.parametrize("uri", ["/index.html", "/cat.jpg", "/big.mp4", "/missing.jpg", "/about"])
    def test_query_suffix_does_not_change_path(self, content_root, uri):
        resolver = ResourceResolver(str(content_root))
        assert resolver.resolve(uri) == resolver.resolve(uri + "?anything=1&b")

    def test_default_extension(self, content_root):
        resolver = ResourceResolver(str(content_root))
        resource = resolver.resolve("/about")

        assert resource.path.endswith("/about.html")
        assert resource.exists

    def test_extension_taken_from_last_segment(self, content_root):
        resolver = ResourceResolver(str(content_root))
        resource = resolver.resolve("/v1.2/readme")
        assert resource.path.endswith("/v1.2/readme.html")

    def test_trailing_slash_serves_index(self, content_root):
        resolver = ResourceResolver(str(content_root))

        assert resolver.resolve("/").path == f"{content_root}/index.html"
        assert resolver.resolve("/docs/").path == f"{content_root}/docs/index.html"
        assert resolver.resolve("/docs/").exists

    def test_uri_without_leading_slash(self, content_root):
        resolver = ResourceResolver(str(content_root))
        assert resolver.resolve("index.html").path == f"{content_root}/index.html"

    def test_missing_file(self, content_root):
        resource = ResourceResolver(str(content_root)).resolve("/missing.jpg")

        assert resource.exists is False
        assert resource.content_type == "image/jpeg"

    def test_directory_is_not_an_existing_file(self, content_root):
        (content_root / "folder.html").mkdir()
        resource = ResourceResolver(str(content_root)).resolve("/folder.html")
        assert resource.exists is False

    def test_no_traversal_normalization(self, content_root):
        """Paths are concatenated as-is; '..' is not collapsed."""
        resource = ResourceResolver(str(content_root)).resolve("/../secret.txt")
        assert resource.path == f"{content_root}/../secret.txt"

    def test_idempotent(self, content_root):
        resolver = ResourceResolver(str(content_root))
        first = resolver.resolve("/cat.jpg?v=1")
        second = resolver.resolve("/cat.jpg?v=1")

        assert first == second
        assert isinstance(first, ResolvedResource)

    def test_not_cached_across_requests(self, content_root):
        resolver = ResourceResolver(str(content_root))
        assert not resolver.resolve("/new.html").exists

        (content_root / "new.html").write_bytes(b"new")
        assert resolver.resolve("/new.html").exists

    def test_relative_root(self):
        resource = ResourceResolver("httpdocs").resolve("/index.html?x=1")
        assert resource.path == "httpdocs/index.html"


class TestContentTypes:
    """Tests for the closed extension → type table."""

    @pytest.mark.parametrize("path, expected", [
        ("httpdocs/cat.jpg", "image/jpeg"),
        ("httpdocs/mandel.mp4", "video/mp4"),
        ("httpdocs/index.html", "text/html"),
        ("httpdocs/style.css", "text/html"),
        ("httpdocs/photo.png", "text/html"),
        ("httpdocs/noext", "text/html"),
    ])
    def test_content_type(self, path, expected):
        assert get_content_type(path) == expected

    def test_case_sensitive(self):
        assert get_content_type("httpdocs/CAT.JPG") == "text/html"
        assert get_content_type("httpdocs/movie.MP4") == "text/html"

    def test_get_extension(self):
        assert get_extension("a/b.c/d") == ""
        assert get_extension("a/b/d.jpg") == ".jpg"
