"""
=============================================================================
TRANSPORT READER
=============================================================================

A SOCK_STREAM socket is a byte stream, NOT a message protocol:

    Client sends one 20-byte packet:
        sendall(packet)

    Server might receive:
        recv() → 20 bytes            (usual case on a local socket)
        recv() → 14 bytes, then 6    (kernel delivered it in two pieces)

The header carries data_len, but the reader here does not parse it. It
collects one "burst": everything that arrives back-to-back, stopping as
soon as the line goes quiet for a few milliseconds.

=============================================================================
BURST READ
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        read_burst() Flow                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   recv_into(buffer[pos:])          ← BLOCKS for the first bytes     │
    │        │                                                             │
    │        ├── 0 bytes   → peer closed, return what we have             │
    │        ├── OSError   → raise TransportError                         │
    │        └── n bytes   → pos += n                                     │
    │                │                                                     │
    │                ├── buffer full → return                              │
    │                │                                                     │
    │                └── select(wait) ← more bytes within `wait` seconds?  │
    │                        ├── yes → recv again                          │
    │                        └── no  → return                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The burst is exactly one packet when the sender wrote one packet and then
waited for a reply, which is how the protocol is used (no pipelining).
If a packet does not fit in one burst, the leftover bytes become a garbage
burst of their own. The codec rejects both and the request is lost: there
is no resynchronization.

=============================================================================
"""

import logging
import select
import socket

from ..errors import TransportError


logger = logging.getLogger(__name__)

# Not available on every platform (macOS has SO_NOSIGPIPE instead)
_SEND_FLAGS = getattr(socket, "MSG_NOSIGNAL", 0)


def read_burst(sock: socket.socket, capacity: int, wait: float = 0.01) -> bytes:
    """
    Receive one burst of bytes from ``sock``.

    Args:
        sock: Connected stream socket in blocking mode.
        capacity: Maximum number of bytes to collect.
        wait: Seconds to wait for more data after each partial receive.

    Returns:
        The bytes received, at most ``capacity``. Empty bytes means the
        peer closed the connection before sending anything.

    Raises:
        TransportError: If the socket reported an error.
    """
    buffer = bytearray(capacity)
    view = memoryview(buffer)
    pos = 0

    while pos < capacity:
        try:
            received = sock.recv_into(view[pos:])
        except OSError as e:
            raise TransportError(f"recv error: {e}") from e

        if received == 0:
            # Peer closed; hand back whatever arrived before the FIN
            break

        pos += received
        if pos >= capacity:
            logger.debug(f"Burst filled the {capacity}-byte buffer")
            break

        try:
            ready, _, _ = select.select([sock], [], [], wait)
        except (OSError, ValueError) as e:
            # ValueError: the descriptor was closed under us
            raise TransportError(f"select error: {e}") from e

        if not ready:
            break

    return bytes(buffer[:pos])


def send_all(sock: socket.socket, data: bytes) -> None:
    """
    Write ``data`` in full.

    sendall() either writes every byte or raises, so a short write
    surfaces here as TransportError. Nothing is retried.
    """
    try:
        sock.sendall(data, _SEND_FLAGS)
    except OSError as e:
        raise TransportError(f"send error: {e}") from e
