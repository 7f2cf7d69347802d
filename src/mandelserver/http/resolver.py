"""
=============================================================================
RESOURCE RESOLVER
=============================================================================

Turns the URI from the request line into a path under the content root.

    GET /gallery/cat.jpg?size=large HTTP/1.1
        └──────────────────────────┘
                    │
                    ▼
        strip "?size=large"            → /gallery/cat.jpg
        prefix content root            → httpdocs/gallery/cat.jpg
        infer content type             → image/jpeg

    GET /about HTTP/1.1
        no extension, append ".html"   → httpdocs/about.html

    GET /docs/ HTTP/1.1
        trailing slash, index file     → httpdocs/docs/index.html

=============================================================================
NO TRAVERSAL PROTECTION
=============================================================================

The resolver does not normalize ".." or follow symlinks. A request for
/../secret.txt resolves to httpdocs/../secret.txt and will be served if it
exists. The server assumes a single trusted deployment root.

=============================================================================
"""

import os
from dataclasses import dataclass

from .mime_types import get_content_type, get_extension


@dataclass(frozen=True)
class ResolvedResource:
    """
    A request path mapped onto the filesystem.

    Attributes:
        path: Storage path (content root + request path).
        content_type: Inferred Content-Type value.
        exists: Whether a regular file was at path when resolved.
    """

    path: str
    content_type: str
    exists: bool


def strip_query(uri: str) -> str:
    """
    Drop everything from the last '?' onwards.

    >>> strip_query("/index.html?a=1")
    '/index.html'
    """
    index = uri.rfind("?")
    if index == -1:
        return uri
    return uri[:index]


class ResourceResolver:
    """
    Maps request URIs to ResolvedResource values.

    Stateless apart from its settings, so one instance is shared by every
    connection. Nothing is cached: each call looks at the filesystem again.

    Usage:
        resolver = ResourceResolver("httpdocs")
        resource = resolver.resolve("/index.html?v=2")
        resource.path           # 'httpdocs/index.html'
        resource.content_type   # 'text/html'
    """

    def __init__(
        self,
        content_root: str = "httpdocs",
        default_extension: str = ".html",
        index_file: str = "index.html",
    ):
        self.content_root = content_root.rstrip("/") or "/"
        self.default_extension = default_extension
        self.index_file = index_file

    def resolve(self, uri: str) -> ResolvedResource:
        path = strip_query(uri)

        if not path.startswith("/"):
            path = "/" + path

        if path.endswith("/"):
            path += self.index_file
        elif not get_extension(path):
            path += self.default_extension

        if self.content_root == "/":
            full_path = path
        else:
            full_path = self.content_root + path

        return ResolvedResource(
            path=full_path,
            content_type=get_content_type(full_path),
            exists=os.path.isfile(full_path),
        )
