"""
=============================================================================
MAIN SERVER
=============================================================================

Ties the components together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        MANDELSERVER ARCHITECTURE                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │  MandelServer   │                          │
    │                        │  (Orchestrator) │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌────────────────┐   ┌────────────────┐     │
    │    │ SocketServer │───►│  Connection    │──►│    Request     │     │
    │    │ (accept loop)│    │  Supervisor    │   │   Dispatcher   │     │
    │    └──────────────┘    └────────────────┘   └───────┬────────┘     │
    │                                                     │               │
    │                           ┌─────────────────────────┼──────────┐   │
    │                           ▼                         ▼          ▼   │
    │                    ┌────────────┐          ┌────────────┐ ┌──────┐ │
    │                    │  Resource  │          │  Response  │ │Mandel│ │
    │                    │  Resolver  │          │   Framer   │ │ Gen. │ │
    │                    └────────────┘          └────────────┘ └──────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
from typing import Optional

from .config import ServerConfig
from .core import ConnectionSupervisor, SocketServer
from .handlers import ContentGenerator, MandelbrotGenerator, RequestDispatcher


logger = logging.getLogger(__name__)


class MandelServer:
    """
    The file server.

    Usage:
        server = MandelServer(ServerConfig(port=8080, content_root="httpdocs"))
        server.run()   # blocks until Ctrl+C / SIGTERM
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        generator: Optional[ContentGenerator] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self.generator = generator or MandelbrotGenerator.from_config(self.config)
        self.dispatcher = RequestDispatcher.from_config(self.config, self.generator)

        self._supervisor = ConnectionSupervisor(self.config.concurrency)
        self._socket_server = SocketServer(self.config, self._supervisor)

        self._running = False

    @property
    def address(self):
        return self._socket_server.address

    def run(self):
        """
        Start the server (blocking).

        Raises:
            SetupError: If the listening socket can't be set up, or accept
                        fails later on.
        """
        self._running = True
        self._setup_logging()

        logger.info(
            f"Serving {self.config.content_root} on {self.config.host}:{self.config.port} "
            f"({self.config.concurrency} per connection, framing={self.config.framing})"
        )

        try:
            self._socket_server.start(self.dispatcher.handle)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask the accept loop to stop. run() returns once units finish."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("mandelserver").setLevel(level)

    def _shutdown(self):
        """Stop accepting, then wait for in-flight connections."""
        if not self._running:
            return
        logger.info("Shutting down server...")
        self._running = False

        self._supervisor.join(timeout=self.config.shutdown_timeout)

        logger.info("Server stopped")
