"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The low-level machinery underneath IPCServer and IPCClient.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Removes a stale socket file, binds, listens                      │
    │  • Runs the accept() loop on the caller's thread                    │
    │  • Stops when its cancellation Event is set                         │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ accepted socket
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       CONNECTION TABLE                               │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • N preallocated slots, O(1) claim/release under a lock            │
    │  • No free slot → the socket is closed immediately                  │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ one thread per claimed slot
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • receive → validate → dispatch → reply, until the peer leaves     │
    │  • Closes its socket and releases its slot on exit                  │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ bytes
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          TRANSPORT                                   │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • read_burst(): one packet's worth of bytes from a stream socket   │
    │  • send_all(): full write or TransportError                         │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .connection_table import ConnectionTable, Slot
from .transport import read_burst, send_all

__all__ = [
    "SocketServer",     # Listening socket and accept loop
    "Connection",       # Per-connection handler loop
    "ConnectionState",  # Handler loop states
    "ConnectionTable",  # Bounded slot table
    "Slot",             # One table entry
    "read_burst",       # Burst read from a stream socket
    "send_all",         # Full write
]
