"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    # Serve ./httpdocs on port 80 (needs root)
    python -m mandelserver

    # Custom port
    python -m mandelserver -p 8080

    # Usage
    python -m mandelserver -h     (or -?, --help)

Exit codes:
    0  help / version printed
    1  socket, bind, listen or accept failed
    2  invalid arguments

Settings not given on the command line come from the environment
(HTTP_PORT, HTTP_CONTENT_ROOT, ...) and then from ServerConfig defaults.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import CONCURRENCY_MODES, FRAMING_MODES, LOG_FORMATS, ServerConfig
from .errors import SetupError
from .server import MandelServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mandelserver",
        description=(
            "HTTP/1.1 file server. Serves files from a content root and renders "
            "Mandelbrot movies for POST /mandel."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Examples:
  mandelserver                          # port 80, ./httpdocs
  mandelserver -p 8080                  # custom port
  mandelserver -p 8080 --framing chunked
  mandelserver --concurrency fork       # one process per connection
        """,
    )

    parser.add_argument(
        "-h", "-?", "--help",
        action="help",
        help="Show this message and exit",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port the server monitors (default: 80)",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Address to bind (default: 0.0.0.0)",
    )

    parser.add_argument(
        "--read-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the request before hanging up (default: wait forever)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT AND FRAMING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--root",
        default=None,
        help="Content root directory (default: httpdocs)",
    )

    parser.add_argument(
        "--framing",
        choices=FRAMING_MODES,
        default=None,
        help="Body framing: auto picks chunked above --chunk-threshold (default: auto)",
    )

    parser.add_argument(
        "--chunk-threshold",
        type=int,
        default=None,
        help="Largest file sent with Content-Length in auto mode, in bytes",
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Bytes per chunk for chunked responses",
    )

    parser.add_argument(
        "--fixed-size-limit",
        type=int,
        default=None,
        help="Largest body ever sent with Content-Length, in any framing mode, in bytes",
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY AND GENERATION
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--concurrency",
        choices=CONCURRENCY_MODES,
        default=None,
        help="Isolation unit per connection (default: thread)",
    )

    parser.add_argument(
        "--generator-dir",
        default=None,
        help="Directory containing mandelmovie (default: mandelbrot)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"mandelserver {__version__}",
    )

    return parser


# CLI option name → ServerConfig field
_OVERRIDES = {
    "port": "port",
    "host": "host",
    "read_timeout": "read_timeout",
    "root": "content_root",
    "framing": "framing",
    "chunk_threshold": "chunk_threshold",
    "chunk_size": "chunk_size",
    "fixed_size_limit": "fixed_size_limit",
    "concurrency": "concurrency",
    "generator_dir": "generator_dir",
    "log_level": "log_level",
    "log_format": "log_format",
}


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment/defaults first, then whatever was given on the command line."""
    config = ServerConfig.from_env()
    for option, field_name in _OVERRIDES.items():
        value = getattr(args, option)
        if value is not None:
            setattr(config, field_name, value)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        config.validate()
    except ValueError as e:
        parser.error(str(e))  # exits 2

    try:
        server = MandelServer(config)
        server.run()
    except SetupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
