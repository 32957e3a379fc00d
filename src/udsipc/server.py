"""
=============================================================================
IPC SERVER
=============================================================================

The orchestrator that ties the core components into a running server.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. CLIENT CONNECTS
       └── SocketServer accepts on the Unix domain socket

    2. ADMISSION
       └── ConnectionTable.claim(): a free slot, or the socket is closed

    3. HANDLER THREAD
       └── One thread per connection runs Connection.serve()

    4. PER REQUEST (on that thread)
       └── burst read → validate → handler(request) → reply

    5. PEER DISCONNECTS
       └── Socket closed, slot released, thread ends

=============================================================================
SHUTDOWN
=============================================================================

    server.shutdown()                 ← signal handler, another thread, a test
        │
        └── sets the cancellation Event
                │
                ▼
    run() leaves the accept loop, then:
        1. join the handler thread of every in-use slot
           └── blocks until each connected peer hangs up
           └── (or shutdown_timeout, then the socket is shut down)
        2. close each connection socket
        3. close the listening socket, unlink the socket file

There is no forced cancellation by default: a client that stays connected
and silent keeps run() from returning. Set shutdown_timeout to bound it.

=============================================================================
"""

import logging
import socket
import threading
from typing import Optional, Union

from .config import IPCConfig
from .core import Connection, ConnectionTable, Slot, SocketServer
from .handlers.base import HandlerFunc, RequestHandler, as_handler


logger = logging.getLogger(__name__)


class IPCServer:
    """
    Thread-per-connection server for the packet protocol.

    =========================================================================
    USAGE
    =========================================================================

        from udsipc import IPCServer, IPCConfig, Packet, Status

        def handle(request):
            if request.command == 0x8001:
                return Packet.response(Status.SUCCESS, bytes([1, 0]))
            return None               # → GENERIC_ERROR reply

        server = IPCServer(handle, IPCConfig(socket_path="/tmp/app.sock"))
        server.run()                  # Blocks until shutdown()

    =========================================================================
    """

    def __init__(
        self,
        handler: Union[RequestHandler, HandlerFunc],
        config: Optional[IPCConfig] = None,
    ):
        """
        Args:
            handler: Request handler shared by all connections.
            config: Server configuration. Defaults are used if omitted.

        Raises:
            ValueError: If the configuration is invalid.
            TypeError: If ``handler`` is not callable.
        """
        self.config = config or IPCConfig()
        self.config.validate()  # Fail-fast on invalid config

        self._handler = as_handler(handler)

        # Explicit cancellation signal for the accept loop
        self._cancel = threading.Event()
        self._socket_server = SocketServer(self.config, cancel=self._cancel)
        self._table = ConnectionTable(self.config.max_connections)

        self._running = False
        self._stopped = threading.Event()

        self.connections_accepted = 0
        self.connections_refused = 0

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Returns after shutdown() has been called and every connection
        has ended.

        Raises:
            OSError: If the socket path cannot be bound.
        """
        self._setup_logging()

        self._running = True
        self._stopped.clear()

        logger.info(
            f"Starting IPC server on {self.config.socket_path} "
            f"({self.config.max_connections} connection slots)"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """
        Ask the server to stop. Returns immediately.

        Safe to call from a signal handler or any thread, and more than
        once. run() completes the shutdown.
        """
        self._socket_server.shutdown()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("udsipc").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._cancel.set()

        for slot in self._table.snapshot():
            self._join_connection(slot)

        self._socket_server.close()

        self._running = False
        self._stopped.set()
        logger.info("Server stopped")

    def _join_connection(self, slot: Slot):
        """
        Wait for the handler thread of ``slot`` to finish, then close its
        socket.
        """
        thread = slot.thread
        timeout = self.config.shutdown_timeout

        if thread is not None:
            logger.info(f"Waiting for connection in slot {slot.index} to close...")
            thread.join(timeout)

            if thread.is_alive():
                # Only reachable with a shutdown_timeout
                logger.warning(
                    f"Connection in slot {slot.index} still open after "
                    f"{timeout}s, shutting it down"
                )
                try:
                    slot.socket.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
                thread.join()

        try:
            slot.socket.close()
        except OSError:
            pass

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, client_socket: socket.socket):
        """
        Admit or refuse an accepted socket (runs on the accept thread).
        """
        slot = self._table.claim(client_socket)

        if slot is None:
            # Table full - refuse without any protocol exchange
            self.connections_refused += 1
            logger.warning(
                f"Too many connections ({self._table.capacity}), refusing new client"
            )
            client_socket.close()
            return

        conn = Connection(
            socket=client_socket,
            handler=self._handler,
            buffer_size=self.config.buffer_size,
            burst_wait=self.config.burst_wait,
            slot=slot,
        )

        thread = threading.Thread(
            target=conn.serve,
            name=f"Connection-{slot.index}-{conn.id}",
            daemon=True,
        )
        slot.thread = thread

        try:
            thread.start()
        except RuntimeError as e:
            logger.error(f"[{conn.id}] Cannot start handler thread: {e}")
            conn.close()
            return

        self.connections_accepted += 1

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_connections(self) -> int:
        return self._table.active

    @property
    def stats(self) -> dict:
        """Connection counters, for health checks and tests."""
        return {
            "connections": {
                "capacity": self._table.capacity,
                "active": self._table.active,
                "accepted": self.connections_accepted,
                "refused": self.connections_refused,
            },
        }

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait until the server is listening. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Wait until run() has finished shutting down. False on timeout."""
        return self._stopped.wait(timeout)
