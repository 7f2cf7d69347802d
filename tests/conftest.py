"""
pytest configuration and fixtures.
"""

import os
import socket
import threading
from typing import Callable, Dict, List, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mandelserver import MandelServer, ServerConfig
from mandelserver.core.connection import Connection
from mandelserver.handlers import (
    ContentGenerator,
    GenerationRequest,
    GenerationResult,
    RequestDispatcher,
)


INDEX_HTML = b"<!DOCTYPE html><html><body><h1>Hello</h1></body></html>\n"


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """A content root with a page, an image, a large movie and a subdirectory."""
    root = tmp_path / "httpdocs"
    root.mkdir()
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "about.html").write_bytes(b"<p>about</p>")
    (root / "cat.jpg").write_bytes(bytes(range(256)) * 40)
    (root / "big.mp4").write_bytes(os.urandom(300_000))
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_bytes(b"<p>docs</p>")
    return root


@pytest.fixture
def config(content_root: Path) -> ServerConfig:
    """Test configuration: small threshold so big.mp4 is chunked."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        content_root=str(content_root),
        chunk_threshold=64 * 1024,
        chunk_size=16 * 1024,
        log_level="WARNING",
    )


class FakeGenerator(ContentGenerator):
    """Stands in for mandelmovie + ffmpeg: records calls, writes a fake movie."""

    def __init__(self, content_root: Path, payload: bytes = b"", ok: bool = True, write: bool = True):
        self.content_root = Path(content_root)
        self.payload = payload or os.urandom(200_000)
        self.ok = ok
        self.write = write
        self.calls: List[GenerationRequest] = []

    artifact_uri = "/mandel.mp4"

    @property
    def output_path(self) -> str:
        return str(self.content_root / "mandel.mp4")

    def generate(self, request: GenerationRequest) -> GenerationResult:
        self.calls.append(request)
        if self.write:
            Path(self.output_path).write_bytes(self.payload)
        if not self.ok:
            return GenerationResult(
                ok=False,
                output_path=self.output_path,
                step="render",
                returncode=1,
                message="boom",
            )
        return GenerationResult(ok=True, output_path=self.output_path)


@pytest.fixture
def fake_generator(content_root: Path) -> FakeGenerator:
    return FakeGenerator(content_root)


@pytest.fixture
def make_generator(content_root: Path) -> Callable[..., FakeGenerator]:
    def factory(**kwargs) -> FakeGenerator:
        return FakeGenerator(content_root, **kwargs)
    return factory


@pytest.fixture
def dispatcher(config: ServerConfig, fake_generator: FakeGenerator) -> RequestDispatcher:
    return RequestDispatcher.from_config(config, fake_generator)


@pytest.fixture
def exchange() -> Callable[..., Tuple[object, bytes]]:
    """
    Run a dispatcher against one request over a socketpair.

    Returns a function: exchange(dispatcher, data) -> (outcome, response bytes).
    An empty `data` makes the client close its write side, so the server's
    first read returns zero bytes.
    """

    def run(dispatcher: RequestDispatcher, data: bytes, timeout: float = None):
        server_sock, client_sock = socket.socketpair()
        conn = Connection(
            socket=server_sock,
            address=("127.0.0.1", 54321),
            timeout=timeout,
        )

        if data:
            client_sock.sendall(data)
        else:
            client_sock.shutdown(socket.SHUT_WR)

        outcome: Dict[str, object] = {}

        def serve():
            outcome["kind"] = dispatcher.handle(conn)

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()

        client_sock.settimeout(10.0)
        received = []
        while True:
            block = client_sock.recv(65536)
            if not block:
                break
            received.append(block)
        client_sock.close()

        thread.join(timeout=10.0)
        assert not thread.is_alive(), "dispatcher did not finish"
        return outcome.get("kind"), b"".join(received)

    return run


def parse_response(raw: bytes) -> Tuple[str, Dict[str, str], bytes]:
    """Split a raw response into (status line, headers, body bytes)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return lines[0], headers, body


def decode_chunked(body: bytes) -> Tuple[bytes, bool]:
    """
    Reassemble a chunked body.

    Returns (data, terminated) where `terminated` is True only when the
    stream ended with the zero-size chunk and nothing follows it.
    """
    data = bytearray()
    position = 0
    while True:
        line_end = body.index(b"\r\n", position)
        size = int(body[position:line_end], 16)
        position = line_end + 2
        if size == 0:
            return bytes(data), body[position:] == b"\r\n"
        data += body[position:position + size]
        assert body[position + size:position + size + 2] == b"\r\n"
        position += size + 2


@pytest.fixture
def http_parse():
    """Access to parse_response / decode_chunked from test modules."""

    class Helpers:
        parse_response = staticmethod(parse_response)
        decode_chunked = staticmethod(decode_chunked)

    return Helpers


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: MandelServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, data: bytes) -> bytes:
        with socket.create_connection(("127.0.0.1", self.port), timeout=10.0) as sock:
            sock.sendall(data)
            received = []
            while True:
                block = sock.recv(65536)
                if not block:
                    break
                received.append(block)
        return b"".join(received)


@pytest.fixture
def start_server(config: ServerConfig, free_port: int, fake_generator: FakeGenerator):
    """
    Factory for running servers: start_server(**config_overrides).

    Every server started through it is stopped at teardown.
    """
    started: List[TestServer] = []

    def factory(**overrides) -> TestServer:
        config.port = free_port
        for name, value in overrides.items():
            setattr(config, name, value)
        test_srv = TestServer(MandelServer(config, generator=fake_generator))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(start_server) -> TestServer:
    """A running server on a free port with a fake movie generator."""
    return start_server()
