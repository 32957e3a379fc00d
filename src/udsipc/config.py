"""
=============================================================================
IPC CONFIGURATION
=============================================================================

Centralized configuration for both ends of the socket.

The server and the client read the same dataclass, so the socket path and
the per-read buffer size can never drift apart between the two processes
as long as they are built from the same source (code or environment).

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m udsipc serve --socket /tmp/app.sock             │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── UDS_SOCKET_PATH=/tmp/app.sock python -m udsipc serve      │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .protocol import HEADER_SIZE


@dataclass
class IPCConfig:
    """
    Configuration for the IPC server and client.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    SOCKET
    - socket_path, backlog, buffer_size

    CONNECTION TABLE
    - max_connections

    TIMING
    - burst_wait, accept_timeout, connect_attempts, connect_interval,
      shutdown_timeout

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # SOCKET SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    socket_path: str = "/tmp/uds_sock.1234"
    """
    Filesystem path of the Unix domain socket.
    Any stale file at this path is removed when the server starts.
    Keep it short: AF_UNIX paths are limited to ~108 bytes on Linux.
    """

    backlog: int = 10
    """
    Maximum number of connections the kernel queues before accept().
    """

    buffer_size: int = 512
    """
    Capacity of one burst read, in bytes.
    A packet (header + payload) larger than this can never be received
    whole and is dropped by the receiver.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONNECTION TABLE
    # ─────────────────────────────────────────────────────────────────────

    max_connections: int = 10
    """
    Number of connection slots. Connection N+1 is closed on accept.
    """

    # ─────────────────────────────────────────────────────────────────────
    # TIMING
    # ─────────────────────────────────────────────────────────────────────

    burst_wait: float = 0.01
    """
    How long a burst read waits for more bytes after a partial receive.
    10 ms: long enough for the peer's remaining bytes of one packet.
    """

    accept_timeout: float = 1.0
    """
    Accept loop polling interval. Shutdown is noticed within this time.
    """

    connect_attempts: int = 5
    """
    Client connect retries after the first failed attempt.
    Bridges the race where the server has not started listening yet.
    """

    connect_interval: float = 1.0
    """
    Seconds the client sleeps between connect attempts.
    """

    shutdown_timeout: Optional[float] = None
    """
    How long shutdown waits for each connected peer to hang up.
    None = wait indefinitely (a silent peer keeps the server alive).
    A number = after that many seconds the connection is forcibly shut.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    Dropped packets are logged at WARNING, so they show at the default.
    """

    log_format: str = "text"
    """
    Access log format: 'json' or 'text'.
    """

    @classmethod
    def from_env(cls) -> "IPCConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        UDS_SOCKET_PATH       Socket path (default: /tmp/uds_sock.1234)
        UDS_BUFFER_SIZE       Burst read capacity (default: 512)
        UDS_BACKLOG           Listen backlog (default: 10)
        UDS_MAX_CONNECTIONS   Connection slots (default: 10)
        UDS_CONNECT_ATTEMPTS  Client connect retries (default: 5)
        UDS_LOG_LEVEL         Logging level (default: INFO)
        UDS_LOG_FORMAT        Access log format (default: text)

        =====================================================================
        """
        return cls(
            socket_path=os.getenv("UDS_SOCKET_PATH", "/tmp/uds_sock.1234"),
            buffer_size=int(os.getenv("UDS_BUFFER_SIZE", "512")),
            backlog=int(os.getenv("UDS_BACKLOG", "10")),
            max_connections=int(os.getenv("UDS_MAX_CONNECTIONS", "10")),
            connect_attempts=int(os.getenv("UDS_CONNECT_ATTEMPTS", "5")),
            log_level=os.getenv("UDS_LOG_LEVEL", "INFO"),
            log_format=os.getenv("UDS_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by the server and the client constructors so that a bad
        value fails at startup, not on the first request.

        Raises:
            ValueError: On the first invalid value found.
        """
        if not self.socket_path:
            raise ValueError("socket_path must not be empty")

        if len(os.fsencode(self.socket_path)) >= 108:
            raise ValueError(f"socket_path too long: {self.socket_path!r}")

        if self.buffer_size <= HEADER_SIZE:
            raise ValueError(f"buffer_size must be > {HEADER_SIZE} (the packet header)")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.burst_wait < 0:
            raise ValueError("burst_wait must be >= 0")

        if self.accept_timeout <= 0:
            raise ValueError("accept_timeout must be > 0")

        if self.connect_attempts < 0:
            raise ValueError("connect_attempts must be >= 0")

        if self.connect_interval < 0:
            raise ValueError("connect_interval must be >= 0")

        if self.shutdown_timeout is not None and self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', not {self.log_format!r}")
