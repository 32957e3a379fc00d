"""
Unit tests for burst reads and full writes.
"""

import socket
import threading
import time

import pytest

from udsipc.core.transport import read_burst, send_all
from udsipc.errors import TransportError
from udsipc.protocol import Command, encode


@pytest.fixture
def pair():
    """Connected pair of Unix stream sockets."""
    a, b = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    yield a, b
    a.close()
    b.close()


def send_later(sock: socket.socket, chunks, gap: float) -> threading.Thread:
    """Send ``chunks`` from a background thread, sleeping ``gap`` between them."""

    def run():
        for i, chunk in enumerate(chunks):
            if i:
                time.sleep(gap)
            sock.sendall(chunk)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


class TestReadBurst:
    """Tests for read_burst()."""

    def test_single_packet(self, pair):
        """Test reading one packet sent in one write."""
        a, b = pair
        data = encode(Command.PUT_MESSAGE, b"hello\0")
        a.sendall(data)

        assert read_burst(b, 512) == data

    def test_split_delivery_is_reassembled(self, pair):
        """Test that pieces arriving within the wait form one burst."""
        a, b = pair
        data = encode(Command.PUT_MESSAGE, b"This is a message from client\0")

        thread = send_later(a, [data[:5], data[5:20], data[20:]], gap=0.05)
        received = read_burst(b, 512, wait=1.0)
        thread.join()

        assert received == data

    def test_quiet_gap_ends_burst(self, pair):
        """Test that a pause longer than the wait splits the stream."""
        a, b = pair

        thread = send_later(a, [b"first", b"second"], gap=0.5)
        assert read_burst(b, 512, wait=0.01) == b"first"
        assert read_burst(b, 512, wait=0.01) == b"second"
        thread.join()

    def test_capacity_is_respected(self, pair):
        """Test that no more than capacity bytes are returned."""
        a, b = pair
        a.sendall(bytes(100))

        assert len(read_burst(b, 40)) == 40
        assert len(read_burst(b, 512)) == 60

    def test_peer_closed(self, pair):
        """Test that EOF returns empty bytes."""
        a, b = pair
        a.close()

        assert read_burst(b, 512) == b""

    def test_data_then_close(self, pair):
        """Test that bytes sent before the close are still delivered."""
        a, b = pair
        a.sendall(b"last words")
        a.close()

        assert read_burst(b, 512) == b"last words"
        assert read_burst(b, 512) == b""

    def test_closed_socket_raises(self, pair):
        """Test that an unusable socket raises TransportError."""
        _, b = pair
        b.close()

        with pytest.raises(TransportError):
            read_burst(b, 512)


class TestSendAll:
    """Tests for send_all()."""

    def test_send(self, pair):
        """Test a complete write."""
        a, b = pair
        data = encode(Command.GET_VERSION)
        send_all(a, data)

        assert b.recv(512) == data

    def test_peer_closed_raises(self, pair):
        """Test that writing to a closed peer raises TransportError."""
        a, b = pair
        b.close()

        with pytest.raises(TransportError):
            send_all(a, encode(Command.GET_VERSION))

    def test_transport_error_is_connection_error(self, pair):
        """Test that TransportError can be caught as ConnectionError."""
        a, _ = pair
        a.close()

        with pytest.raises(ConnectionError):
            send_all(a, b"x")
