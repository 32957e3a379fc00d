"""
=============================================================================
ACCESS LOGGING HANDLER
=============================================================================

Wraps another request handler and writes one log line per request:

    LoggingHandler(ExampleHandler())

        request ──► [start timer] ──► inner.handle() ──► [log line] ──► response

Text format:

    a1b2c3d4 [18/Oct/2026:10:15:02 +0000] GET_VERSION 0B -> SUCCESS 2B 0.04ms

JSON format (for log aggregators):

    {"request_id": "a1b2c3d4", "command": "GET_VERSION", "status": "SUCCESS", ...}

When the inner handler returns None, the line shows GENERIC_ERROR: that is
what the connection will send back.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Optional, Union

from ..protocol import Packet, Status, describe_command
from .base import HandlerFunc, RequestHandler, as_handler


logger = logging.getLogger("udsipc.access")


@dataclass
class RequestLog:
    """Structured log entry for one request."""

    request_id: str
    command: str
    request_len: int
    status: str
    response_len: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f"{self.request_id} [{self.timestamp}] "
            f"{self.command} {self.request_len}B -> "
            f"{self.status} {self.response_len}B {self.duration_ms:.2f}ms"
        )


class LoggingHandler(RequestHandler):
    """Request handler decorator that emits access logs."""

    def __init__(
        self,
        inner: Union[RequestHandler, HandlerFunc],
        log_format: str = "text",
        log_level: int = logging.INFO,
    ):
        """
        Args:
            inner: The handler doing the actual work.
            log_format: "text" or "json".
            log_level: Level of the access log records.
        """
        self.inner = as_handler(inner)
        self.log_format = log_format
        self.log_level = log_level

    def handle(self, request: Packet) -> Optional[Packet]:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = self.inner(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {describe_command(request.code)} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if isinstance(response, Packet):
            status = response.status
            response_len = response.data_len
        else:
            status = Status.GENERIC_ERROR
            response_len = 0

        log_entry = RequestLog(
            request_id=request_id,
            command=describe_command(request.code),
            request_len=request.data_len,
            status=status.name if isinstance(status, Status) else str(status),
            response_len=response_len,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        return response
