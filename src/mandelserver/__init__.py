"""
=============================================================================
MANDELSERVER - Minimal HTTP/1.1 File Server
=============================================================================

Serves files from a content root over raw sockets, one isolated unit per
connection, and renders Mandelbrot zoom movies on demand.

    GET  /index.html               → httpdocs/index.html (text/html)
    GET  /cat.jpg?x=1              → httpdocs/cat.jpg    (image/jpeg)
    POST /mandel  body: x=..&y=..  → run generator, then httpdocs/mandel.mp4

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    mandelserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m mandelserver)
    ├── server.py            # MandelServer orchestrator
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # ErrorKind, SetupError
    ├── access_log.py        # One log line per request
    ├── core/                # Sockets and concurrency
    │   ├── socket_server.py # Listening socket, accept loop
    │   ├── supervisor.py    # Thread / fork unit per connection
    │   └── connection.py    # Client socket wrapper
    ├── http/                # Protocol
    │   ├── request.py       # Request line, body fields
    │   ├── resolver.py      # URI → file path
    │   ├── mime_types.py    # Extension → Content-Type
    │   ├── response.py      # Fixed-length / chunked framing
    │   └── status_codes.py  # HTTPStatus
    └── handlers/
        ├── dispatcher.py    # One request per connection
        └── generator.py     # mandelmovie + ffmpeg adapter

=============================================================================
QUICK START
=============================================================================

    from mandelserver import MandelServer, ServerConfig

    server = MandelServer(ServerConfig(port=8080, content_root="httpdocs"))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import MandelServer
from .config import ServerConfig

__all__ = ["MandelServer", "ServerConfig", "__version__"]
