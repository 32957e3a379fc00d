"""
=============================================================================
LOW-LEVEL UNIX DOMAIN SOCKET SERVER
=============================================================================

This module owns the listening socket: it binds it to a filesystem path,
accepts connections, and hands every accepted socket to a callback. What
happens to the connection afterwards is the caller's business.

=============================================================================
UNIX DOMAIN SOCKETS
=============================================================================

An AF_UNIX socket is addressed by a PATH instead of IP:PORT:

    AF_INET:   bind(("127.0.0.1", 8080))     reachable over the network
    AF_UNIX:   bind("/tmp/uds_sock.1234")    same host only

bind() creates a socket file at that path. The file outlives the process
if the process dies without cleaning up, and a later bind() to the same
path then fails with "Address already in use". SO_REUSEADDR does not help
here; the stale file has to be unlinked first.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. unlink()    Remove a stale socket file from a previous run
    2. socket()    AF_UNIX, SOCK_STREAM
    3. bind()      Create the socket file
    4. listen()    backlog = connections the kernel queues for us
    5. accept()    Loop until cancelled
    6. close()     Close and unlink

=============================================================================
INTERRUPTIBLE ACCEPT
=============================================================================

accept() blocks. To stop the loop without killing the process, the
listening socket gets a timeout and the loop checks a cancellation
Event between attempts:

    while not cancel.is_set():
        try:
            accept()           # Blocks for accept_timeout at most
        except timeout:
            continue           # Check the event, loop again

Whoever owns the Event (the IPCServer, a signal handler, a test) stops
the loop by setting it.

=============================================================================
"""

import logging
import os
import socket
import threading
from typing import Callable, Optional

from ..config import IPCConfig


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Listening Unix domain socket with a cancellable accept loop.

    Usage:
        def on_accept(sock: socket.socket):
            ...

        server = SocketServer(config)
        server.start(on_accept)     # Blocks until shutdown()
        server.close()
    """

    def __init__(self, config: IPCConfig, cancel: Optional[threading.Event] = None):
        """
        Args:
            config: Socket path, backlog, accept timeout.
            cancel: Event that stops the accept loop when set. A private
                    one is created if not given.
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._cancel = cancel if cancel is not None else threading.Event()
        self._ready = threading.Event()
        self._bound = False

    @property
    def path(self) -> str:
        return self.config.socket_path

    @property
    def is_running(self) -> bool:
        return self._ready.is_set() and not self._cancel.is_set()

    def _remove_stale_socket(self):
        """Unlink whatever is left at the socket path by an earlier run."""
        try:
            os.unlink(self.path)
            logger.debug(f"Removed stale socket file {self.path}")
        except FileNotFoundError:
            pass

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)

        # Lets the accept loop wake up and check the cancellation event
        sock.settimeout(self.config.accept_timeout)

        return sock

    def start(self, connection_handler: Callable[[socket.socket], None]):
        """
        Bind, listen and accept until cancelled.

        This method BLOCKS. It does not close the listening socket on
        return: call close() once the accepted connections are dealt with.

        Args:
            connection_handler: Called on the accepting thread with every
                                accepted socket. Must not block for long.

        Raises:
            OSError: If the socket cannot be bound or put in listen mode.
        """
        self._remove_stale_socket()
        self._socket = self._create_socket()

        try:
            self._socket.bind(self.path)
            self._bound = True
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to listen on {self.path}: {e}")
            raise

        self._ready.set()
        logger.info(f"Server listening on {self.path}")

        self._accept_loop(connection_handler)

    def _accept_loop(self, connection_handler: Callable[[socket.socket], None]):
        while not self._cancel.is_set():
            try:
                client_socket, _ = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                # Listening socket closed under us, or we are shutting down
                if self._cancel.is_set() or self._socket.fileno() == -1:
                    break
                logger.error(f"Accept error: {e}")
                # Avoid spinning on a persistent error such as EMFILE
                self._cancel.wait(0.05)
                continue

            logger.debug(f"Accepted connection on {self.path}")
            connection_handler(client_socket)

    def shutdown(self):
        """
        Stop the accept loop. Idempotent, callable from any thread.
        """
        if not self._cancel.is_set():
            logger.info("Stopping accept loop...")
        self._cancel.set()

    def close(self):
        """Close the listening socket and remove the socket file."""
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        if self._bound:
            try:
                os.unlink(self.path)
            except FileNotFoundError:
                pass
            self._bound = False

        self._ready.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the socket is listening.

        Returns:
            True once listening, False on timeout.
        """
        return self._ready.wait(timeout)
