"""
=============================================================================
REQUEST DISPATCHER
=============================================================================

Serves exactly one request on one connection, start to finish.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        handle(conn) Flow                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   read_once()                                                        │
    │     ├── b""          → close             PEER_CLOSED                │
    │     ├── timeout      → close             READ_TIMEOUT               │
    │     └── b"quit..."   → close             QUIT                       │
    │                                                                      │
    │   parse request line                                                 │
    │     ├── < 3 tokens   → 400               MALFORMED_REQUEST          │
    │     └── bad verb     → 405               METHOD_NOT_ALLOWED         │
    │                                                                      │
    │   resolve(uri)                                                       │
    │                                                                      │
    │   POST + "mandel" in uri?                                            │
    │     ├── x= / y= missing → literal path   MISSING_PARAMETERS         │
    │     └── both present    → generate(x, y), wait                       │
    │                            ├── failed / no artifact → 502            │
    │                            └── resolve(artifact_uri)                 │
    │                                                                      │
    │   frame_and_send(resource)  → 200 or 404                             │
    │                                                                      │
    │   close                                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every fault stays inside this connection. An unexpected exception is
logged and, if nothing has been written yet, answered with a bare 500.

=============================================================================
"""

import logging
import time
from typing import Optional

from ..access_log import AccessLogger
from ..core.connection import Connection, ConnectionState
from ..errors import ErrorKind
from ..http.request import HTTPParseError, HTTPRequest, RequestParser, is_quit
from ..http.resolver import ResourceResolver
from ..http.response import (
    FrameResult,
    ResponseFramer,
    bad_gateway,
    bad_request,
    internal_error,
    method_not_allowed,
)
from ..http.status_codes import HTTPStatus
from .generator import ContentGenerator, GenerationRequest


logger = logging.getLogger(__name__)


class RequestDispatcher:
    """
    Glue between a connection, the resolver, the generator and the framer.

    One instance is shared by all connection units. It holds no per-request
    state, so thread units can call handle() concurrently.

    Usage:
        dispatcher = RequestDispatcher(
            resolver=ResourceResolver("httpdocs"),
            framer=ResponseFramer(),
            generator=MandelbrotGenerator(workdir="mandelbrot", content_root="httpdocs"),
        )
        dispatcher.handle(conn)   # serves and closes conn
    """

    def __init__(
        self,
        resolver: ResourceResolver,
        framer: ResponseFramer,
        generator: Optional[ContentGenerator] = None,
        parser: Optional[RequestParser] = None,
        dynamic_trigger: str = "mandel",
        frame_count: int = 10,
        max_iterations: int = 100,
        access_log: Optional[AccessLogger] = None,
    ):
        self.resolver = resolver
        self.framer = framer
        self.generator = generator
        self.parser = parser or RequestParser()
        self.dynamic_trigger = dynamic_trigger
        self.frame_count = frame_count
        self.max_iterations = max_iterations
        self.access_log = access_log or AccessLogger()

    @classmethod
    def from_config(cls, config, generator: Optional[ContentGenerator] = None) -> "RequestDispatcher":
        return cls(
            resolver=ResourceResolver(
                config.content_root,
                default_extension=config.default_extension,
                index_file=config.index_file,
            ),
            framer=ResponseFramer.from_config(config),
            generator=generator,
            dynamic_trigger=config.dynamic_trigger,
            frame_count=config.frame_count,
            max_iterations=config.max_iterations,
            access_log=AccessLogger(log_format=config.log_format),
        )

    def is_dynamic(self, request: HTTPRequest) -> bool:
        """Check for the dynamic-content trigger: POST to a 'mandel' URI."""
        return request.method == "POST" and self.dynamic_trigger in request.uri

    def handle(self, conn: Connection) -> Optional[ErrorKind]:
        """
        Serve one request and close the connection.

        Returns:
            The ErrorKind the request ended with, or None if it was served
            normally.
        """
        with conn:
            try:
                return self._serve(conn)
            except Exception as e:
                logger.exception(f"[{conn.id}] Unhandled error: {e}")
                if conn.bytes_sent == 0:
                    self.framer.send_error(conn, internal_error())
                return ErrorKind.INTERNAL

    def _serve(self, conn: Connection) -> Optional[ErrorKind]:
        started = time.time()

        # ─────────────────────────────────────────────────────────────────
        # READ
        # ─────────────────────────────────────────────────────────────────
        try:
            data = conn.read_once()
        except TimeoutError:
            logger.info(f"[{conn.id}] Read timed out, closing")
            return ErrorKind.READ_TIMEOUT

        if not data:
            logger.debug(f"[{conn.id}] Client disconnected")
            return ErrorKind.PEER_CLOSED

        if is_quit(data):
            logger.info(f"[{conn.id}] Client sent quit, closing")
            return ErrorKind.QUIT

        conn.state = ConnectionState.PROCESSING

        # ─────────────────────────────────────────────────────────────────
        # PARSE
        # ─────────────────────────────────────────────────────────────────
        try:
            request = self.parser.parse(data)
        except HTTPParseError as e:
            logger.warning(f"[{conn.id}] {e}")
            if e.status_code == HTTPStatus.METHOD_NOT_ALLOWED:
                result = self.framer.send_error(conn, method_not_allowed(self.parser.valid_methods))
                kind = ErrorKind.METHOD_NOT_ALLOWED
            else:
                result = self.framer.send_error(conn, bad_request())
                kind = ErrorKind.MALFORMED_REQUEST
            self.access_log.record(conn, "-", "-", result, started)
            return kind

        logger.debug(f"[{conn.id}] {request.method} {request.uri} {request.version}")

        # ─────────────────────────────────────────────────────────────────
        # RESOLVE (and maybe GENERATE)
        # ─────────────────────────────────────────────────────────────────
        resource = self.resolver.resolve(request.uri)
        outcome: Optional[ErrorKind] = None

        if self.is_dynamic(request):
            coordinates = request.coordinates()
            if coordinates is None:
                logger.warning(
                    f"[{conn.id}] x and/or y not found in POST body, "
                    f"serving {resource.path} instead"
                )
                outcome = ErrorKind.MISSING_PARAMETERS
            else:
                generated = self._generate(conn, *coordinates)
                if generated is None:
                    result = self.framer.send_error(conn, bad_gateway())
                    self.access_log.record(conn, request.method, request.uri, result, started)
                    return ErrorKind.GENERATION_FAILED
                resource = generated

        # ─────────────────────────────────────────────────────────────────
        # FRAME AND SEND
        # ─────────────────────────────────────────────────────────────────
        result = self.framer.frame_and_send(resource, conn)
        self.access_log.record(conn, request.method, request.uri, result, started)

        if not result.complete:
            logger.warning(f"[{conn.id}] Response to {request.uri} was cut short")

        if outcome is None and result.status == HTTPStatus.NOT_FOUND:
            return ErrorKind.NOT_FOUND
        return outcome

    def _generate(self, conn: Connection, x: float, y: float):
        """
        Run the generator and re-resolve its artifact.

        Returns the artifact's ResolvedResource, or None if the generator
        failed or the artifact is missing afterwards.
        """
        if self.generator is None:
            logger.error(f"[{conn.id}] Dynamic request but no generator configured")
            return None

        result = self.generator.generate(GenerationRequest(
            x=x,
            y=y,
            frame_count=self.frame_count,
            max_iterations=self.max_iterations,
        ))
        resource = self.resolver.resolve(self.generator.artifact_uri)

        if not result.ok:
            logger.error(f"[{conn.id}] Generation failed at {result.step}: {result.message}")
            return None
        if not resource.exists:
            logger.error(f"[{conn.id}] Generator reported success but {resource.path} is missing")
            return None
        return resource
