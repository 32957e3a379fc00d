"""
pytest configuration and fixtures.
"""

import shutil
import socket
import tempfile
import threading
import time
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from udsipc import IPCClient, IPCConfig, IPCServer
from udsipc.handlers import ExampleHandler


@pytest.fixture
def socket_path() -> Generator[str, None, None]:
    """
    Short, unique socket path.

    pytest's tmp_path can exceed the ~108 byte AF_UNIX limit, so use a
    fresh directory directly under the system temp dir.
    """
    directory = tempfile.mkdtemp(prefix="uds-")
    yield str(Path(directory) / "ipc.sock")
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def config(socket_path: str) -> IPCConfig:
    """Default test configuration: fast polling, bounded shutdown."""
    return IPCConfig(
        socket_path=socket_path,
        max_connections=4,
        accept_timeout=0.05,
        connect_attempts=40,
        connect_interval=0.05,
        shutdown_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def example_handler() -> ExampleHandler:
    return ExampleHandler()


class RunningServer:
    """Runs an IPCServer in a background thread."""

    def __init__(self, server: IPCServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "RunningServer":
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")
        return self

    def stop(self, timeout: float = 10.0):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


@pytest.fixture
def start_server() -> Generator:
    """Factory: start_server(handler, config) -> RunningServer, stopped on teardown."""
    started = []

    def _start(handler, config: IPCConfig) -> RunningServer:
        running = RunningServer(IPCServer(handler, config)).start()
        started.append(running)
        return running

    yield _start

    for running in started:
        running.stop()


@pytest.fixture
def running_server(start_server, example_handler, config) -> RunningServer:
    """Example server on the test socket path."""
    return start_server(example_handler, config)


@pytest.fixture
def client(running_server, config) -> Generator[IPCClient, None, None]:
    """Client connected to running_server."""
    with IPCClient(config) as c:
        yield c


def raw_connect(path: str, timeout: float = 2.0) -> socket.socket:
    """Plain socket connected to ``path``, for tests below the client API."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    sock.connect(path)
    return sock


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until true or timeout."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
