"""
=============================================================================
IPC CLIENT
=============================================================================

A synchronous client session: one socket, one request in flight at a time.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Client Round Trip                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   connect()         retry every connect_interval seconds, up to     │
    │      │              connect_attempts extra tries                    │
    │      ▼                                                               │
    │   send_request()    encode + one full write                         │
    │      │              failure → TransportError                        │
    │      ▼                                                               │
    │   receive_response() one burst read + validation                    │
    │      │              failure → None, socket stays open               │
    │      ▼                                                               │
    │   close()           no goodbye message                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHAT THE PROTOCOL CANNOT TELL YOU
=============================================================================

Packets carry no sequence number. When receive_response() returns None,
the request may have been lost on the way in, or the response on the way
out; the client cannot know which. Retrying is the caller's decision,
and a retried request may be executed twice.

=============================================================================
"""

import logging
import socket
import time
from typing import Optional

from .config import IPCConfig
from .core.transport import read_burst, send_all
from .errors import ConnectError, PacketError, TransportError
from .protocol import Packet, decode, describe_command, encode


logger = logging.getLogger(__name__)


class IPCClient:
    """
    Client session for the packet protocol.

    Usage:
        with IPCClient(IPCConfig(socket_path="/tmp/app.sock")) as client:
            response = client.request(Command.GET_VERSION)
            if response is not None and response.status == Status.SUCCESS:
                major, minor = response.payload
    """

    def __init__(self, config: Optional[IPCConfig] = None):
        self.config = config or IPCConfig()
        self.config.validate()

        self._socket: Optional[socket.socket] = None

    @property
    def connected(self) -> bool:
        return self._socket is not None

    # =========================================================================
    # CONNECT
    # =========================================================================

    def connect(self) -> "IPCClient":
        """
        Connect to the server, retrying while it is not listening yet.

        Returns:
            self, for chaining.

        Raises:
            ConnectError: If every attempt failed.
        """
        if self._socket is not None:
            return self

        path = self.config.socket_path
        attempts = self.config.connect_attempts + 1
        last_error: Optional[OSError] = None

        for attempt in range(1, attempts + 1):
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                sock.connect(path)
            except OSError as e:
                sock.close()
                last_error = e
                logger.debug(f"Connect attempt {attempt}/{attempts} to {path} failed: {e}")
            else:
                self._socket = sock
                logger.debug(f"Connected to {path}")
                return self

            if attempt < attempts:
                time.sleep(self.config.connect_interval)

        raise ConnectError(
            f"cannot connect to {path} after {attempts} attempts: {last_error}"
        ) from last_error

    # =========================================================================
    # REQUEST / RESPONSE
    # =========================================================================

    def send_request(self, request: Packet) -> None:
        """
        Encode ``request`` and write it in full.

        The signature is always stamped with the protocol constant and
        the checksum is computed here.

        Raises:
            TransportError: If not connected or the write failed.
            ValueError: If the packet cannot fit the server's read buffer.
        """
        sock = self._require_socket()

        data = encode(request.code, request.payload)
        if len(data) > self.config.buffer_size:
            raise ValueError(
                f"request of {len(data)} bytes exceeds the "
                f"{self.config.buffer_size}-byte buffer"
            )

        send_all(sock, data)

    def receive_response(self) -> Optional[Packet]:
        """
        Read one response.

        Returns:
            The validated response, or None if nothing usable arrived.
            The connection is left open either way.
        """
        sock = self._require_socket()

        try:
            data = read_burst(sock, self.config.buffer_size, self.config.burst_wait)
        except TransportError as e:
            logger.warning(f"Receive response failed: {e}")
            return None

        if not data:
            logger.warning("Receive response failed: connection closed by server")
            return None

        try:
            return decode(data)
        except PacketError as e:
            logger.warning(f"Dropping invalid response: {e}")
            return None

    def request(self, command: int, payload: bytes = b"") -> Optional[Packet]:
        """
        One synchronous round trip.

        Raises:
            TransportError: If the request could not be written.
        """
        logger.debug(f"Sending {describe_command(command)} ({len(payload)} bytes)")
        self.send_request(Packet.request(command, payload))
        return self.receive_response()

    def _require_socket(self) -> socket.socket:
        if self._socket is None:
            raise TransportError("client is not connected")
        return self._socket

    # =========================================================================
    # CLOSE
    # =========================================================================

    def close(self) -> None:
        """Release the socket. Safe to call twice."""
        if self._socket is None:
            return
        try:
            self._socket.close()
        except OSError:
            pass
        self._socket = None

    def __enter__(self) -> "IPCClient":
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
