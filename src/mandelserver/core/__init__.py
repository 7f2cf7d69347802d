"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

    core/
    ├── socket_server.py  # Listening socket + accept loop
    ├── supervisor.py     # One isolated unit per connection
    └── connection.py     # Client socket wrapper

    SocketServer ──accept──► Connection ──spawn──► ConnectionSupervisor
                                                        │
                                                        └─► handler(conn)

=============================================================================
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .supervisor import ConnectionSupervisor

__all__ = [
    "Connection",
    "ConnectionState",
    "ConnectionSupervisor",
    "SocketServer",
]
