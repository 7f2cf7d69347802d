"""
Unit tests for ConnectionSupervisor.
"""

import os
import socket
import threading

import pytest

from mandelserver.core.connection import Connection, ConnectionState
from mandelserver.core.supervisor import ConnectionSupervisor


def make_pair():
    server_sock, client_sock = socket.socketpair()
    client_sock.settimeout(5.0)
    return Connection(socket=server_sock, address=("127.0.0.1", 1)), client_sock


def read_all(sock) -> bytes:
    received = []
    while True:
        block = sock.recv(4096)
        if not block:
            return b"".join(received)
        received.append(block)


class TestThreadMode:
    """Tests for the default thread-per-connection unit."""

    def test_handler_runs_and_connection_closes(self):
        supervisor = ConnectionSupervisor()
        conn, client = make_pair()

        supervisor.spawn(conn, lambda c: c.send_response(b"hello"))

        assert read_all(client) == b"hello"
        assert supervisor.join(timeout=5.0)
        assert conn.state is ConnectionState.CLOSED
        client.close()

    def test_units_run_concurrently(self):
        supervisor = ConnectionSupervisor()
        release = threading.Event()
        started = threading.Barrier(3, timeout=5.0)

        def slow_handler(conn):
            started.wait()
            release.wait(5.0)

        clients = []
        for _ in range(2):
            conn, client = make_pair()
            clients.append(client)
            supervisor.spawn(conn, slow_handler)

        # Both units reach the barrier while neither has finished
        started.wait()
        assert supervisor.active_count == 2

        release.set()
        assert supervisor.join(timeout=5.0)
        assert supervisor.active_count == 0
        for client in clients:
            client.close()

    def test_crash_is_contained(self):
        supervisor = ConnectionSupervisor()
        conn, client = make_pair()

        def broken(c):
            raise RuntimeError("boom")

        supervisor.spawn(conn, broken)

        assert read_all(client) == b""
        assert supervisor.join(timeout=5.0)
        assert conn.is_closed
        client.close()

    def test_reap_never_blocks(self):
        supervisor = ConnectionSupervisor()
        release = threading.Event()
        conn, client = make_pair()

        supervisor.spawn(conn, lambda c: release.wait(5.0))

        assert supervisor.reap() == 0
        assert supervisor.active_count == 1

        release.set()
        assert supervisor.join(timeout=5.0)
        client.close()

    def test_join_timeout(self):
        supervisor = ConnectionSupervisor()
        release = threading.Event()
        conn, client = make_pair()

        supervisor.spawn(conn, lambda c: release.wait(5.0))

        assert supervisor.join(timeout=0.1) is False

        release.set()
        assert supervisor.join(timeout=5.0)
        client.close()

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            ConnectionSupervisor(mode="greenlet")


@pytest.mark.skipif(not hasattr(os, "fork"), reason="needs os.fork()")
@pytest.mark.filterwarnings("ignore::DeprecationWarning")
class TestForkMode:
    """Tests for the process-per-connection unit."""

    def test_child_serves_and_parent_releases(self):
        supervisor = ConnectionSupervisor(mode="fork")
        listener = socket.socket()
        conn, client = make_pair()

        supervisor.spawn(conn, lambda c: c.send_response(b"from child"), listener=listener)

        # Parent's copy released without shutdown; child still answers
        assert conn.is_closed
        assert read_all(client) == b"from child"
        assert supervisor.join(timeout=5.0)
        assert supervisor.active_count == 0

        listener.close()
        client.close()

    def test_crashing_child_does_not_affect_parent(self):
        supervisor = ConnectionSupervisor(mode="fork")
        conn, client = make_pair()

        def broken(c):
            raise RuntimeError("boom")

        supervisor.spawn(conn, broken)

        assert read_all(client) == b""
        assert supervisor.join(timeout=5.0)
        client.close()
