"""
=============================================================================
CONNECTION HANDLER
=============================================================================

One Connection object, running on its own thread, serves one client for as
long as the client stays connected.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ┌──────────► RECEIVING ─────────► VALIDATING ──────► DISPATCHING
    │                │                    │                   │
    │                │ EOF / error        │ bad packet        │
    │                │                    │ (dropped, no      ▼
    │                │                    │  reply)        REPLYING
    │                │                    │                   │
    │                ▼                    │                   │ send failed
    │             CLOSED ◄────────────────┼───────────────────┤
    │                                     │                   │
    └─────────────────────────────────────┴───────────────────┘
                          next request

Error scope:

    Transport error (recv/send failed, peer closed)  → close THIS connection
    Protocol error (signature, length, checksum)    → drop THIS packet
    Unknown command                                 → normal reply, error status

There is no idle timeout: a connected client that never sends anything
keeps its slot until it disconnects.

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..errors import PacketError, TransportError
from ..handlers.base import HandlerFunc
from ..protocol import Packet, Status, decode, describe_command
from .connection_table import Slot
from .transport import read_burst, send_all


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    RECEIVING = "receiving"      # Blocked in a burst read
    VALIDATING = "validating"    # Checking signature, length, checksum
    DISPATCHING = "dispatching"  # Request handler is running
    REPLYING = "replying"        # Writing the response
    CLOSED = "closed"            # Socket released, slot freed


@dataclass
class Connection:
    """
    Serves one accepted socket until the peer goes away.

    Attributes:
        socket: The accepted client socket.
        handler: Request handler shared by all connections.
        buffer_size: Capacity of one burst read.
        burst_wait: Wait for more bytes after a partial read.
        slot: Connection table slot to release on close.
        id: Short identifier for log correlation.
        requests_handled: Replies sent so far.
        packets_dropped: Bursts rejected by the codec.
    """

    socket: socket.socket
    handler: HandlerFunc
    buffer_size: int = 512
    burst_wait: float = 0.01
    slot: Optional[Slot] = field(default=None, repr=False)

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.RECEIVING
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0
    packets_dropped: int = 0

    def __post_init__(self):
        # Accepted sockets may inherit the listener's accept timeout
        self.socket.setblocking(True)

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    def serve(self) -> None:
        """
        Run the receive → validate → dispatch → reply loop.

        Returns when the peer disconnects or an I/O error occurs. The
        socket is closed and the slot released on the way out, whatever
        the reason.
        """
        logger.debug(f"[{self.id}] Connection opened")

        try:
            while True:
                # ─────────────────────────────────────────────────────────
                # RECEIVE
                # ─────────────────────────────────────────────────────────
                self.state = ConnectionState.RECEIVING
                try:
                    data = read_burst(self.socket, self.buffer_size, self.burst_wait)
                except TransportError as e:
                    logger.warning(f"[{self.id}] {e}")
                    break

                if not data:
                    logger.debug(f"[{self.id}] Peer closed the connection")
                    break

                # ─────────────────────────────────────────────────────────
                # VALIDATE
                # ─────────────────────────────────────────────────────────
                self.state = ConnectionState.VALIDATING
                try:
                    request = decode(data)
                except PacketError as e:
                    # Packet-fatal only: the connection stays up
                    self.packets_dropped += 1
                    logger.warning(f"[{self.id}] Dropping {len(data)}-byte packet: {e}")
                    continue

                # ─────────────────────────────────────────────────────────
                # DISPATCH
                # ─────────────────────────────────────────────────────────
                self.state = ConnectionState.DISPATCHING
                response = self._dispatch(request)

                # ─────────────────────────────────────────────────────────
                # REPLY
                # ─────────────────────────────────────────────────────────
                self.state = ConnectionState.REPLYING
                if not self._reply(response):
                    break

                self.requests_handled += 1
        finally:
            self.close()

    def _dispatch(self, request: Packet) -> Packet:
        """
        Call the request handler and turn its result into a sendable reply.

        A handler that returns None, returns something other than a
        Packet, or raises, yields a GENERIC_ERROR reply with no payload.
        """
        try:
            response = self.handler(request)
        except Exception as e:
            logger.exception(
                f"[{self.id}] Handler error on {describe_command(request.code)}: {e}"
            )
            response = None

        if response is not None and not isinstance(response, Packet):
            logger.error(
                f"[{self.id}] Handler returned {type(response).__name__}, expected Packet"
            )
            response = None

        if response is None:
            response = Packet.response(Status.GENERIC_ERROR)

        # The reply echoes the request's signature; to_bytes() recomputes
        # the checksum with the field zeroed
        return response.with_signature(request.signature)

    def _reply(self, response: Packet) -> bool:
        """
        Write ``response`` in full.

        Returns:
            True if sent, False if the connection must be closed.
        """
        data = response.to_bytes()
        if len(data) > self.buffer_size:
            logger.warning(
                f"[{self.id}] {len(data)}-byte response exceeds the "
                f"{self.buffer_size}-byte read buffer; the peer will drop it"
            )

        try:
            send_all(self.socket, data)
        except TransportError as e:
            logger.warning(f"[{self.id}] Send response failed: {e}")
            return False
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """Close the socket and free the slot. Safe to call twice."""
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSED

        try:
            self.socket.close()
        except OSError:
            pass

        if self.slot is not None:
            self.slot.release()

        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests "
            f"({self.packets_dropped} dropped, {self.age:.2f}s)"
        )

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
