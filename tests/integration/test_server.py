"""
End-to-end tests: a real server on a real socket file.
"""

import os
import socket
import threading
import time
from dataclasses import replace

import pytest

from conftest import raw_connect, wait_for
from udsipc import IPCClient, IPCServer, Packet, Status
from udsipc.errors import ConnectError, TransportError
from udsipc.handlers import ExampleHandler
from udsipc.protocol import Command, decode, encode


class TestRequests:
    """Round trips through IPCClient."""

    def test_get_version(self, client):
        response = client.request(Command.GET_VERSION)

        assert response.status == Status.SUCCESS
        assert response.data_len == 2
        assert tuple(response.payload) == (1, 0)

    def test_get_message(self, client):
        response = client.request(Command.GET_MESSAGE)

        assert response.status == Status.SUCCESS
        assert response.payload.endswith(b"\0")
        assert response.payload[:-1].decode() == "This is a message from the server."

    def test_put_message(self, client, example_handler):
        response = client.request(Command.PUT_MESSAGE, b"hello\0")

        assert response.status == Status.SUCCESS
        assert response.data_len == 0
        assert list(example_handler.received) == [b"hello\0"]

    def test_unknown_command(self, client):
        response = client.request(0xFFFF)

        assert response.status == Status.INVALID_COMMAND
        assert response.data_len == 0

    def test_many_requests_one_connection(self, client, example_handler):
        """Test a sequence of requests on a single connection."""
        for i in range(20):
            response = client.request(Command.PUT_MESSAGE, f"msg {i}\0".encode())
            assert response.status == Status.SUCCESS

        assert len(example_handler.received) == 20

    def test_message_history_bounded(self, start_server, config):
        """Test that a long-running server keeps only recent messages."""
        handler = ExampleHandler(history=5)
        start_server(handler, config)

        with IPCClient(config) as client:
            for i in range(200):
                response = client.request(Command.PUT_MESSAGE, bytes(400) + b"\0")
                assert response.status == Status.SUCCESS

        assert len(handler.received) == 5

    def test_handler_returning_none(self, start_server, config):
        """Test that a handler without an answer yields GENERIC_ERROR."""
        start_server(lambda request: None, config)

        with IPCClient(config) as client:
            response = client.request(Command.GET_VERSION)

        assert response.status == Status.GENERIC_ERROR
        assert response.data_len == 0

    def test_oversize_request_rejected(self, client):
        """Test that the client refuses packets the server cannot read whole."""
        with pytest.raises(ValueError):
            client.request(Command.PUT_MESSAGE, bytes(600))

        # Nothing was sent; the session is still usable
        assert client.request(Command.GET_VERSION).status == Status.SUCCESS

    def test_not_connected(self, config):
        client = IPCClient(config)

        with pytest.raises(TransportError):
            client.request(Command.GET_VERSION)


class TestInvalidPackets:
    """Malformed input is dropped without closing the connection."""

    @pytest.mark.parametrize("mutate", [
        lambda data: data[:-1] + bytes([data[-1] ^ 0xFF]),   # checksum
        lambda data: b"\x00\x00\x00\x00" + data[4:],          # signature
        lambda data: data + b"extra",                         # length
        lambda data: data[:10],                               # truncated
    ])
    def test_dropped_then_recovered(self, running_server, socket_path, mutate):
        sock = raw_connect(socket_path)
        try:
            sock.sendall(mutate(encode(Command.GET_VERSION)))

            sock.settimeout(0.3)
            with pytest.raises(socket.timeout):
                sock.recv(512)

            sock.settimeout(2.0)
            sock.sendall(encode(Command.GET_VERSION))
            response = decode(sock.recv(512))
        finally:
            sock.close()

        assert response.status == Status.SUCCESS
        assert response.payload == b"\x01\x00"


class TestAdmission:
    """Connection table limits."""

    def test_connection_over_capacity_is_closed(self, start_server, example_handler, config):
        config = replace(config, max_connections=2)
        running = start_server(example_handler, config)

        clients = [IPCClient(config).connect() for _ in range(2)]
        try:
            # Both admitted and served
            for client in clients:
                assert client.request(Command.GET_VERSION).status == Status.SUCCESS

            extra = raw_connect(config.socket_path)
            try:
                assert extra.recv(512) == b""
            finally:
                extra.close()

            # Existing sessions are unaffected
            for client in clients:
                assert client.request(Command.GET_VERSION).status == Status.SUCCESS

            stats = running.server.stats["connections"]
            assert stats["accepted"] == 2
            assert stats["refused"] == 1
        finally:
            for client in clients:
                client.close()

    def test_slot_reused_after_disconnect(self, start_server, example_handler, config):
        config = replace(config, max_connections=1)
        running = start_server(example_handler, config)

        with IPCClient(config) as client:
            assert client.request(Command.GET_VERSION).status == Status.SUCCESS

        assert wait_for(lambda: running.server.active_connections == 0)

        with IPCClient(config) as client:
            assert client.request(Command.GET_VERSION).status == Status.SUCCESS

        assert running.server.stats["connections"]["refused"] == 0

    def test_concurrent_clients(self, running_server, config, example_handler):
        """Test several sessions served at the same time."""
        errors = []

        def session(n: int):
            try:
                with IPCClient(config) as client:
                    for i in range(10):
                        response = client.request(
                            Command.PUT_MESSAGE, f"{n}-{i}\0".encode()
                        )
                        if response is None or response.status != Status.SUCCESS:
                            errors.append((n, i, response))
            except Exception as e:
                errors.append((n, e))

        threads = [threading.Thread(target=session, args=(n,)) for n in range(config.max_connections)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert errors == []
        assert len(example_handler.received) == 10 * config.max_connections


class TestLifecycle:
    """Startup, connect retry and shutdown."""

    def test_stale_socket_file_removed(self, start_server, example_handler, config):
        with open(config.socket_path, "w") as f:
            f.write("left over")

        start_server(example_handler, config)

        with IPCClient(config) as client:
            assert client.request(Command.GET_VERSION).status == Status.SUCCESS

    def test_socket_file_removed_on_stop(self, start_server, example_handler, config):
        running = start_server(example_handler, config)
        assert os.path.exists(config.socket_path)

        running.stop()

        assert running.server.wait_for_shutdown(timeout=5.0)
        assert not os.path.exists(config.socket_path)

    def test_connect_error_without_server(self, config):
        config = replace(config, connect_attempts=2, connect_interval=0.01)

        with pytest.raises(ConnectError):
            IPCClient(config).connect()

    def test_connect_retries_until_server_starts(self, start_server, example_handler, config):
        """Test that a client started first waits for the server."""
        timer = threading.Timer(0.3, start_server, args=(example_handler, config))
        timer.start()
        try:
            with IPCClient(config) as client:
                assert client.request(Command.GET_VERSION).status == Status.SUCCESS
        finally:
            timer.join()

    def test_shutdown_without_clients(self, running_server):
        running_server.server.shutdown()

        assert running_server.server.wait_for_shutdown(timeout=5.0)
        assert not running_server.server.is_running

    def test_shutdown_waits_for_connected_client(self, start_server, example_handler, config):
        """Test that shutdown blocks until the peer hangs up."""
        config = replace(config, shutdown_timeout=None)
        running = start_server(example_handler, config)

        client = IPCClient(config).connect()
        assert client.request(Command.GET_VERSION).status == Status.SUCCESS

        running.server.shutdown()
        assert not running.server.wait_for_shutdown(timeout=0.5)
        assert running.alive

        client.close()
        assert running.server.wait_for_shutdown(timeout=5.0)

    def test_shutdown_timeout_forces_close(self, start_server, example_handler, config):
        """Test that a silent client is cut off once the timeout expires."""
        config = replace(config, shutdown_timeout=0.2)
        running = start_server(example_handler, config)

        sock = raw_connect(config.socket_path, timeout=5.0)
        try:
            sock.sendall(encode(Command.GET_VERSION))
            assert decode(sock.recv(512)).status == Status.SUCCESS

            started = time.time()
            running.server.shutdown()
            assert running.server.wait_for_shutdown(timeout=5.0)
            assert time.time() - started < 5.0

            # The server side is gone
            assert sock.recv(512) == b""
        finally:
            sock.close()


class TestHandlerObjects:
    """Handlers given as RequestHandler subclasses or functions."""

    def test_function_handler(self, start_server, config):
        def handle(request: Packet):
            return Packet.response(Status.SUCCESS, request.payload[::-1])

        start_server(handle, config)

        with IPCClient(config) as client:
            response = client.request(Command.PUT_MESSAGE, b"abc")

        assert response.payload == b"cba"

    def test_rejects_non_callable(self, config):
        with pytest.raises(TypeError):
            IPCServer(42, config)

    def test_rejects_invalid_config(self, config):
        with pytest.raises(ValueError):
            IPCServer(lambda r: None, replace(config, max_connections=0))
