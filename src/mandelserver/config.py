"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration management for the file server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m mandelserver -p 8080                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_PORT=8080 python -m mandelserver                     │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


FRAMING_MODES = ("auto", "fixed", "chunked")
CONCURRENCY_MODES = ("thread", "fork")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, read_buffer_size, read_timeout

    CONTENT
    - content_root, default_extension, index_file

    FRAMING
    - framing, chunk_threshold, chunk_size, fixed_size_limit

    CONCURRENCY
    - concurrency, shutdown_timeout

    DYNAMIC CONTENT
    - dynamic_trigger, generator_dir, generator_program, encoder_program,
      frame_count, max_iterations, artifact_name, generator_timeout

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind. All interfaces by default."""

    port: int = 80
    """Port to listen on. Ports below 1024 need root on Unix."""

    backlog: int = 5
    """Accept queue length handed to listen()."""

    read_buffer_size: int = 100_000
    """
    Upper bound for the single read of a request.
    Anything the client sends beyond this is never looked at.
    """

    read_timeout: Optional[float] = None
    """
    Timeout for the request read in seconds.
    None = block until the client sends or closes.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    content_root: str = "httpdocs"
    """Directory every request path is appended to."""

    default_extension: str = ".html"
    """Appended to paths whose last segment has no extension."""

    index_file: str = "index.html"
    """Served for paths ending in a slash."""

    # ─────────────────────────────────────────────────────────────────────
    # FRAMING
    # ─────────────────────────────────────────────────────────────────────

    framing: str = "auto"
    """
    Response body framing.
    - "auto"    - chunked when size is unknown or above chunk_threshold
    - "fixed"   - Content-Length whenever the size is known and within
                  fixed_size_limit
    - "chunked" - always Transfer-Encoding: chunked
    """

    chunk_threshold: int = 1024 * 1024  # 1 MB
    """Largest file sent with Content-Length in auto mode."""

    chunk_size: int = 64 * 1024
    """Bytes read from the file per chunk."""

    fixed_size_limit: int = 64 * 1024 * 1024  # 64 MB
    """
    Largest body ever buffered for Content-Length framing, in any mode.
    Bigger files, and files whose size is unknown, are always chunked.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    concurrency: str = "thread"
    """
    Unit of isolation per connection.
    - "thread" - one thread per connection
    - "fork"   - one child process per connection (POSIX only)
    """

    shutdown_timeout: float = 30.0
    """How long shutdown waits for in-flight connections."""

    # ─────────────────────────────────────────────────────────────────────
    # DYNAMIC CONTENT
    # ─────────────────────────────────────────────────────────────────────

    dynamic_trigger: str = "mandel"
    """POSTs whose URI contains this substring start generation."""

    generator_dir: str = "mandelbrot"
    """Working directory of the movie generator."""

    generator_program: str = "./mandelmovie"
    """Frame renderer, run inside generator_dir."""

    encoder_program: str = "ffmpeg"
    """Video encoder that turns the frames into the artifact."""

    frame_count: int = 10
    max_iterations: int = 100

    artifact_name: str = "mandel.mp4"
    """File name of the generated movie, in generator_dir and content_root."""

    generator_timeout: Optional[float] = None
    """Per-step timeout for the external commands. None = wait forever."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'json' or 'text'."""

    server_name: str = "MandelServer/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        HTTP_HOST            Bind address (default: 0.0.0.0)
        HTTP_PORT            Port (default: 80)
        HTTP_CONTENT_ROOT    Content root (default: httpdocs)
        HTTP_FRAMING         auto | fixed | chunked
        HTTP_CONCURRENCY     thread | fork
        HTTP_GENERATOR_DIR   Generator working directory
        HTTP_LOG_LEVEL       Logging level (default: INFO)
        """
        defaults = cls()
        return cls(
            host=os.getenv("HTTP_HOST", defaults.host),
            port=int(os.getenv("HTTP_PORT", str(defaults.port))),
            content_root=os.getenv("HTTP_CONTENT_ROOT", defaults.content_root),
            framing=os.getenv("HTTP_FRAMING", defaults.framing),
            concurrency=os.getenv("HTTP_CONCURRENCY", defaults.concurrency),
            generator_dir=os.getenv("HTTP_GENERATOR_DIR", defaults.generator_dir),
            log_level=os.getenv("HTTP_LOG_LEVEL", defaults.log_level),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at startup so a bad value fails before the socket opens.
        Port 0 is allowed: the OS picks a free port.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.framing not in FRAMING_MODES:
            raise ValueError(f"framing must be one of {FRAMING_MODES}, got {self.framing!r}")

        if self.concurrency not in CONCURRENCY_MODES:
            raise ValueError(
                f"concurrency must be one of {CONCURRENCY_MODES}, got {self.concurrency!r}"
            )

        if self.concurrency == "fork" and not hasattr(os, "fork"):
            raise ValueError("concurrency='fork' is not available on this platform")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")

        if self.read_buffer_size < 16:
            raise ValueError("read_buffer_size must be >= 16")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.chunk_threshold < 0:
            raise ValueError("chunk_threshold must be >= 0")

        if self.fixed_size_limit < 0:
            raise ValueError("fixed_size_limit must be >= 0")

        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")

        if not self.dynamic_trigger:
            raise ValueError("dynamic_trigger must not be empty")
