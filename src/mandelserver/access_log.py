"""
=============================================================================
ACCESS LOGGING
=============================================================================

One line per served request, emitted by the dispatcher once the response
has been written.

    TEXT FORMAT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 10.0.0.7 - - [10/Jun/2026:10:55:36 +0000] "GET /cat.jpg" 200       │
    │   48213 fixed 3.12ms                                                │
    └─────────────────────────────────────────────────────────────────────┘

    JSON FORMAT (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"connection_id": "a1b2c3d4", "method": "GET", "uri": "/cat.jpg",  │
    │  "status_code": 200, "framing": "fixed", "body_bytes": 48213, ...} │
    └─────────────────────────────────────────────────────────────────────┘

The logger is namespaced so it can be routed separately:

    logging.getLogger("mandelserver.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass


logger = logging.getLogger("mandelserver.access")


@dataclass
class RequestLog:
    """Structured log entry for one request."""

    connection_id: str
    method: str
    uri: str
    client_ip: str
    status_code: int
    framing: str
    body_bytes: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "method": self.method,
            "uri": self.uri,
            "client_ip": self.client_ip,
            "status_code": self.status_code,
            "framing": self.framing,
            "body_bytes": self.body_bytes,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style line, with framing and timing appended."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.uri}" {self.status_code} '
            f'{self.body_bytes} {self.framing} {self.duration_ms:.2f}ms'
        )


class AccessLogger:
    """Formats RequestLog entries and writes them to mandelserver.access."""

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def record(self, conn, method: str, uri: str, result, started: float) -> RequestLog:
        """Build an entry from a connection and FrameResult and emit it."""
        entry = RequestLog(
            connection_id=conn.id,
            method=method,
            uri=uri,
            client_ip=conn.client_ip,
            status_code=int(result.status),
            framing=result.mode.value,
            body_bytes=result.body_bytes,
            duration_ms=(time.time() - started) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )
        self.emit(entry)
        return entry

    def emit(self, entry: RequestLog):
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
