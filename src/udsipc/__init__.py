"""
=============================================================================
UDSIPC - Local IPC over Unix Domain Sockets
=============================================================================

Request/response messaging between processes on the same host, over a
filesystem-addressed stream socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      UDSIPC ARCHITECTURE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   IPCClient ──── packet ────►  /tmp/uds_sock.1234  ──► IPCServer    │
    │             ◄─── packet ─────                          │            │
    │                                                        ▼            │
    │                                            one thread per client    │
    │                                                        │            │
    │                                                        ▼            │
    │                                             RequestHandler.handle() │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Packet = 14-byte header (signature, command/status, data_len,
             checksum) + payload

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    udsipc/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m udsipc)
    ├── server.py            # IPCServer
    ├── client.py            # IPCClient
    ├── config.py            # IPCConfig dataclass
    ├── errors.py            # Exception hierarchy
    ├── core/                # Sockets and threads
    │   ├── socket_server.py # Listening socket, accept loop
    │   ├── connection_table.py # Bounded slot table
    │   ├── connection.py    # Per-connection handler loop
    │   └── transport.py     # Burst read, full write
    ├── protocol/            # Wire format
    │   ├── packet.py        # Header, checksum, encode/decode
    │   └── status_codes.py  # Command and Status enums
    └── handlers/            # Application side
        ├── base.py          # RequestHandler interface
        ├── example.py       # Version / message example
        └── logging.py       # Access logging decorator

=============================================================================
QUICK START
=============================================================================

    # Server process
    from udsipc import IPCServer, IPCConfig
    from udsipc.handlers import ExampleHandler

    IPCServer(ExampleHandler(), IPCConfig(socket_path="/tmp/app.sock")).run()

    # Client process
    from udsipc import IPCClient, IPCConfig, Command

    with IPCClient(IPCConfig(socket_path="/tmp/app.sock")) as client:
        response = client.request(Command.GET_VERSION)
        print(tuple(response.payload))     # (1, 0)

=============================================================================
"""

__version__ = "1.0.0"

from .client import IPCClient
from .config import IPCConfig
from .errors import (
    ConnectError,
    IPCError,
    PacketError,
    TransportError,
)
from .handlers import RequestHandler
from .protocol import Command, Packet, Status
from .server import IPCServer

__all__ = [
    "IPCServer",
    "IPCClient",
    "IPCConfig",
    "Packet",
    "Command",
    "Status",
    "RequestHandler",
    "IPCError",
    "PacketError",
    "TransportError",
    "ConnectError",
    "__version__",
]
