"""
Tests for the non-blocking socket adapter.
"""

import pytest
from tcpnet.adapter import ABSENT, SocketAdapter, validate_ipv4
from tcpnet.errors import ErrorKind


class Untouchable:
    """Stand-in socket that fails the test if anything is called on it."""

    def __getattr__(self, name):
        pytest.fail(f"socket.{name} was used")


class TestReceive:
    """Test recv() outcomes."""

    def test_zero_size_rejected(self):
        """Test a zero-size receive fails without touching the socket."""
        adapter = SocketAdapter(Untouchable())

        result = adapter.recv(0)
        assert not result
        assert result.error.kind is ErrorKind.USAGE

    def test_no_data_is_pending(self, socket_pair):
        a, _ = socket_pair
        result = SocketAdapter(a).recv(16)

        assert result
        assert result.pending
        assert result.data == b""

    def test_receive_data(self, socket_pair, wait_for):
        a, b = socket_pair
        adapter = SocketAdapter(a)
        b.send(b"Hello")

        assert wait_for(lambda: adapter.available() == 5)
        result = adapter.recv(16)
        assert result.data == b"Hello"
        assert result.count == 5

    def test_receive_limited_to_size(self, socket_pair, wait_for):
        a, b = socket_pair
        adapter = SocketAdapter(a)
        b.send(b"Hello, World!")

        assert wait_for(lambda: adapter.available() == 13)
        assert adapter.recv(5).data == b"Hello"
        assert adapter.available() == 8

    def test_zero_length_read_is_disconnect(self, socket_pair):
        """Test a closed peer is reported as DISCONNECTED."""
        a, b = socket_pair
        b.close()

        result = SocketAdapter(a).recv(16)
        assert not result
        assert result.error.kind is ErrorKind.DISCONNECTED

    def test_receive_without_socket(self):
        result = SocketAdapter().recv(16)
        assert result.error.kind is ErrorKind.NOT_CONNECTED


class TestPeek:
    """Test peek_alive() disconnect detection."""

    def test_alive_without_data(self, socket_pair):
        a, _ = socket_pair
        assert SocketAdapter(a).peek_alive()

    def test_peek_does_not_consume(self, socket_pair, wait_for):
        a, b = socket_pair
        adapter = SocketAdapter(a)
        b.send(b"xyz")

        assert wait_for(lambda: adapter.available() == 3)
        assert adapter.peek_alive()
        assert adapter.recv(16).data == b"xyz"

    def test_closed_peer(self, socket_pair):
        a, b = socket_pair
        b.close()

        result = SocketAdapter(a).peek_alive()
        assert not result
        assert result.error.kind is ErrorKind.DISCONNECTED


class TestSend:
    """Test send() outcomes."""

    def test_send(self, socket_pair):
        a, b = socket_pair
        result = SocketAdapter(a).send(b"Hello")

        assert result
        assert result.count == 5
        assert b.recv(16) == b"Hello"

    def test_partial_write_reported(self, short_send_pair):
        """Test a short send fails but leaves the socket usable."""
        short, peer = short_send_pair
        adapter = SocketAdapter(short)

        result = adapter.send(b"abcdef")
        assert not result
        assert result.error.kind is ErrorKind.PARTIAL_WRITE
        assert result.count == 3
        assert adapter.is_open

        result = adapter.send(b"gh")
        assert result
        assert result.count == 2
        assert peer.recv(16) == b"abcgh"

    def test_send_to_closed_peer(self, socket_pair):
        a, b = socket_pair
        b.close()

        result = SocketAdapter(a).send(b"data")
        assert not result
        assert result.error.kind is ErrorKind.DISCONNECTED

    def test_send_without_socket(self):
        result = SocketAdapter().send(b"data")
        assert result.error.kind is ErrorKind.NOT_CONNECTED


class TestLifecycle:
    """Test descriptor handling."""

    def test_absent_descriptor(self):
        adapter = SocketAdapter()
        assert adapter.fileno == ABSENT
        assert not adapter.is_open

    def test_close_idempotent(self, socket_pair):
        a, _ = socket_pair
        adapter = SocketAdapter(a)
        assert adapter.is_open

        adapter.close()
        adapter.close()
        assert adapter.fileno == ABSENT

    def test_accept_nothing_pending(self):
        listener = SocketAdapter.create()
        try:
            listener.set_nonblocking()
            listener.sock.bind(("127.0.0.1", 0))
            listener.sock.listen(1)

            result, peer, address = listener.accept()
            assert result.pending
            assert peer is None
            assert address is None
        finally:
            listener.close()

    def test_validate_ipv4(self):
        assert validate_ipv4("127.0.0.1")
        assert validate_ipv4("192.168.1.100")
        assert not validate_ipv4("999.1.1.1")
        assert not validate_ipv4("localhost")
        assert not validate_ipv4("")
