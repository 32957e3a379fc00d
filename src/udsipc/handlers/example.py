"""
=============================================================================
EXAMPLE COMMAND SET
=============================================================================

A small request handler showing how application logic plugs into the
server. It answers three commands:

    ┌──────────────┬──────────────────────────┬───────────────────────────┐
    │ Command      │ Request payload          │ Response (status, payload)│
    ├──────────────┼──────────────────────────┼───────────────────────────┤
    │ GET_VERSION  │ (empty)                  │ SUCCESS, bytes([major,    │
    │              │                          │                 minor])   │
    │ GET_MESSAGE  │ (empty)                  │ SUCCESS, b"...\\0"         │
    │ PUT_MESSAGE  │ b"text\\0"                │ SUCCESS, (empty)          │
    │ anything else│ (ignored)                │ INVALID_COMMAND, (empty)  │
    └──────────────┴──────────────────────────┴───────────────────────────┘

Strings travel NUL-terminated so that a C peer can use them as-is.

=============================================================================
"""

import logging
import threading
from collections import deque
from typing import Callable, Optional

from ..protocol import Command, Packet, Status, describe_command
from .base import RequestHandler


logger = logging.getLogger(__name__)


class ExampleHandler(RequestHandler):
    """
    Version query and message get/put.

    The last ``history`` messages received with PUT_MESSAGE are kept in
    ``received`` (raw bytes, NUL included) so callers and tests can see what
    arrived. Older ones are discarded.
    """

    def __init__(
        self,
        version: tuple[int, int] = (1, 0),
        message: str = "This is a message from the server.",
        history: int = 100,
    ):
        major, minor = version
        if not (0 <= major <= 255 and 0 <= minor <= 255):
            raise ValueError(f"version parts must fit in a byte: {version}")
        if history < 0:
            raise ValueError(f"history must be >= 0, got {history}")

        self.version = (major, minor)
        self.message = message
        self.received: deque[bytes] = deque(maxlen=history)
        self._lock = threading.Lock()

        self._commands: dict[int, Callable[[Packet], Packet]] = {
            Command.GET_VERSION: self.get_version,
            Command.GET_MESSAGE: self.get_message,
            Command.PUT_MESSAGE: self.put_message,
        }

    def handle(self, request: Packet) -> Optional[Packet]:
        command = self._commands.get(request.code)
        if command is None:
            logger.info(f"Unknown command {describe_command(request.code)}")
            return Packet.response(Status.INVALID_COMMAND)
        return command(request)

    def get_version(self, request: Packet) -> Packet:
        return Packet.response(Status.SUCCESS, bytes(self.version))

    def get_message(self, request: Packet) -> Packet:
        return Packet.response(Status.SUCCESS, self.message.encode("utf-8") + b"\0")

    def put_message(self, request: Packet) -> Packet:
        with self._lock:
            self.received.append(request.payload)

        logger.info(f"Message: {decode_cstring(request.payload)}")
        return Packet.response(Status.SUCCESS)

    @property
    def messages(self) -> list[str]:
        """Received messages as text, terminators stripped."""
        with self._lock:
            return [decode_cstring(raw) for raw in self.received]


def decode_cstring(data: bytes) -> str:
    """Text up to the first NUL (or the whole buffer if there is none)."""
    return data.split(b"\0", 1)[0].decode("utf-8", errors="replace")
