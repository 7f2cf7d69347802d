"""
=============================================================================
CONNECTION SUPERVISOR
=============================================================================

Runs each accepted connection in its own isolated unit and keeps track of
the units so finished ones can be reaped and live ones waited for.

=============================================================================
TWO KINDS OF UNIT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   THREAD (default)                 FORK (POSIX)                     │
    │   ────────────────                 ────────────                     │
    │                                                                      │
    │   accept loop                      accept loop                      │
    │     │                                │                              │
    │     └─► Thread(handler, conn)        └─► os.fork()                  │
    │           │                                ├── child:               │
    │           └─ conn owned by thread          │     close listener     │
    │                                            │     handler(conn)      │
    │   listener never handed over               │     os._exit()         │
    │                                            └── parent:              │
    │                                                  release conn       │
    │                                                  remember pid       │
    │                                                                      │
    │   reap: drop dead threads          reap: waitpid(-1, WNOHANG)       │
    └─────────────────────────────────────────────────────────────────────┘

Units share nothing mutable, so there is no locking around request
handling. The lock below only guards the supervisor's own bookkeeping.

spawn() never waits for a unit. reap() never blocks. join() is the only
blocking call and is used during shutdown, like a wait-group.

=============================================================================
"""

import os
import signal
import time
import logging
import threading
from typing import Callable, Dict, Optional, Set

from .connection import Connection


logger = logging.getLogger(__name__)


ConnectionHandler = Callable[[Connection], object]


class ConnectionSupervisor:
    """
    Spawns, reaps and joins per-connection units.

    Usage:
        supervisor = ConnectionSupervisor(mode="thread")
        supervisor.spawn(conn, dispatcher.handle)
        supervisor.reap()                  # opportunistic, non-blocking
        supervisor.join(timeout=30.0)      # at shutdown
    """

    def __init__(self, mode: str = "thread"):
        if mode not in ("thread", "fork"):
            raise ValueError(f"Unknown concurrency mode: {mode}")
        if mode == "fork" and not hasattr(os, "fork"):
            raise ValueError("fork mode needs os.fork()")

        self.mode = mode

        # Identifiers only: the units own their connections
        self._threads: Dict[str, threading.Thread] = {}
        self._children: Set[int] = set()

        self._lock = threading.Lock()

    @property
    def active_count(self) -> int:
        """Units spawned and not yet reaped."""
        with self._lock:
            return len(self._threads) + len(self._children)

    # =========================================================================
    # SPAWNING
    # =========================================================================

    def spawn(
        self,
        conn: Connection,
        handler: ConnectionHandler,
        listener=None,
    ):
        """
        Start a unit that owns `conn` and runs `handler(conn)`.

        Args:
            conn: The accepted connection. Ownership moves to the unit.
            handler: Called once with the connection; must close it.
            listener: The listening socket. Only used in fork mode, where
                      the child closes its inherited copy first thing.
        """
        if self.mode == "fork":
            self._spawn_process(conn, handler, listener)
        else:
            self._spawn_thread(conn, handler)

    def _spawn_thread(self, conn: Connection, handler: ConnectionHandler):
        thread = threading.Thread(
            target=self._run_unit,
            args=(conn, handler),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        with self._lock:
            self._threads[conn.id] = thread
        thread.start()

    @staticmethod
    def _run_unit(conn: Connection, handler: ConnectionHandler):
        try:
            handler(conn)
        except Exception as e:
            logger.exception(f"[{conn.id}] Connection unit crashed: {e}")
        finally:
            conn.close()

    def _spawn_process(self, conn: Connection, handler: ConnectionHandler, listener):
        pid = os.fork()

        if pid == 0:
            # ─────────────────────────────────────────────────────────────
            # CHILD
            # ─────────────────────────────────────────────────────────────
            status = 0
            try:
                if listener is not None:
                    listener.close()
                # The parent's shutdown handlers make no sense here
                signal.signal(signal.SIGINT, signal.SIG_DFL)
                signal.signal(signal.SIGTERM, signal.SIG_DFL)
                self._run_unit(conn, handler)
            except Exception as e:
                logger.exception(f"[{conn.id}] Child setup failed: {e}")
                status = 1
            finally:
                for log_handler in logging.getLogger().handlers:
                    log_handler.flush()
                os._exit(status)

        # ─────────────────────────────────────────────────────────────────
        # PARENT
        # ─────────────────────────────────────────────────────────────────
        # Drop our descriptor only. shutdown() would end the child's stream.
        conn.release()
        with self._lock:
            self._children.add(pid)
        logger.debug(f"[{conn.id}] Handed to child process {pid}")

    # =========================================================================
    # REAPING
    # =========================================================================

    def reap(self) -> int:
        """
        Forget units that have finished. Never blocks.

        Returns:
            Number of units reaped.
        """
        reaped = 0

        with self._lock:
            for conn_id, thread in list(self._threads.items()):
                if not thread.is_alive():
                    del self._threads[conn_id]
                    reaped += 1

            while self._children:
                try:
                    pid, _status = os.waitpid(-1, os.WNOHANG)
                except ChildProcessError:
                    self._children.clear()
                    break
                if pid == 0:
                    break
                self._children.discard(pid)
                reaped += 1

        return reaped

    # =========================================================================
    # JOINING
    # =========================================================================

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every live unit to finish.

        Args:
            timeout: Maximum seconds to wait in total. None = no limit.

        Returns:
            True if all units finished, False if the timeout expired first.
        """
        deadline = None if timeout is None else time.time() + timeout

        with self._lock:
            threads = list(self._threads.values())

        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.time())
            thread.join(remaining)

        while True:
            self.reap()
            with self._lock:
                pending = len(self._threads) + len(self._children)
            if pending == 0:
                return True
            if deadline is not None and time.time() >= deadline:
                logger.warning(f"{pending} connection unit(s) still running at shutdown")
                return False
            time.sleep(0.05)
