"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Every accepted client is
wrapped in a Connection and handed to the ConnectionSupervisor, which runs
it in its own unit. The accept loop never waits for a unit to finish.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create a TCP socket            ─┐
    2. bind()      Claim host:port                 ├─ SetupError on failure
    3. listen()    Start queueing connections     ─┘  (process exits 1)
    4. accept()    Wait for a client (loop)       ──  SetupError on failure
    5. close()     Release the socket

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once at startup
                    └───────────┬───────────┘     Never given to a unit
                                │
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌───────────┐         ┌───────────┐         ┌───────────┐
    │  Unit 1   │         │  Unit 2   │         │  Unit 3   │
    │ (conn 1)  │         │ (conn 2)  │         │ (conn 3)  │
    └───────────┘         └───────────┘         └───────────┘

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR: restart immediately without "Address already in use" while
              old connections sit in TIME_WAIT.
TCP_NODELAY:  send small writes (headers, chunk trailers) right away.
timeout 1.0:  accept() wakes up every second so shutdown() is noticed.

=============================================================================
SIGNALS
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, kill) trigger a graceful
shutdown. Handlers can only be installed from the main thread; when the
server runs in a background thread (tests) they are skipped.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..errors import SetupError
from .connection import Connection
from .supervisor import ConnectionSupervisor


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config, ConnectionSupervisor("thread"))
        server.start(handle_connection)  # Blocks until shutdown
    """

    ACCEPT_POLL_INTERVAL = 1.0

    def __init__(self, config: ServerConfig, supervisor: Optional[ConnectionSupervisor] = None):
        self.config = config
        self.supervisor = supervisor or ConnectionSupervisor(config.concurrency)

        self._socket: Optional[socket.socket] = None
        self._running = False

        self._ready_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); reflects the real port when port=0."""
        if self._socket is not None:
            try:
                return self._socket.getsockname()[:2]
            except OSError:
                pass
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise SetupError("socket", str(e), e) from e

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            sock.close()
            raise SetupError("setsockopt", str(e), e) from e

        sock.settimeout(self.ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self):
        """
        Create, bind and listen. Separate from start() so callers can learn
        the bound address before the loop starts.

        Raises:
            SetupError: If any step fails.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            self._close_socket()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise SetupError("bind", str(e), e) from e

        try:
            self._socket.listen(self.config.backlog)
        except OSError as e:
            self._close_socket()
            raise SetupError("listen", str(e), e) from e

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], object]):
        """
        Bind (if not done yet) and run the accept loop.

        Blocks until shutdown() is called.

        Raises:
            SetupError: On socket, bind, listen or accept failure.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._setup_signals()
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], object]):
        """
        Main loop for accepting connections.

        ┌─────────────────────────────────────────────────────────────────┐
        │   while running:                                                 │
        │       reap finished units (non-blocking)                         │
        │       accept()  ── timeout → loop again                          │
        │       wrap in Connection                                         │
        │       supervisor.spawn(conn, handler)  ── returns immediately    │
        └─────────────────────────────────────────────────────────────────┘
        """
        while self._running:
            self.supervisor.reap()

            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break  # Socket closed by shutdown()
                logger.error(f"Accept error: {e}")
                raise SetupError("accept", str(e), e) from e

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                read_buffer_size=self.config.read_buffer_size,
                timeout=self.config.read_timeout,
            )

            self.supervisor.spawn(conn, connection_handler, listener=self._socket)

    def shutdown(self):
        """
        Initiate graceful shutdown.

        Safe to call from a signal handler or another thread, and more
        than once.
        """
        logger.info("Shutting down socket server...")
        self._running = False

    def _close_socket(self):
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

    def _cleanup(self):
        self._restore_signals()
        self._close_socket()
        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running. Used by tests."""
        return self._ready_event.wait(timeout)
