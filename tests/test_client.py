"""
Tests for the TCP client over loopback.
"""

import socket

import pytest
from tcpnet import ConnectionState, ErrorKind, TCPClient


@pytest.fixture
def listener():
    """A plain blocking listening socket on an ephemeral loopback port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    sock.settimeout(2.0)
    yield sock
    sock.close()


@pytest.fixture
def client():
    c = TCPClient()
    yield c
    c.client_close()


@pytest.fixture
def connected(client, listener, wait_for):
    """A connected client and the server-side socket it is talking to."""
    assert client.start(listener.getsockname()[1], "127.0.0.1")
    conn, _ = listener.accept()
    conn.settimeout(2.0)
    assert wait_for(client.poll_connect)
    yield client, conn
    conn.close()


def closed_port() -> int:
    """A loopback port nobody is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestConnect:
    """Test start() and connect verification."""

    def test_connect(self, client, listener, wait_for):
        result = client.start(listener.getsockname()[1], "127.0.0.1")

        assert result
        assert client.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED)
        assert wait_for(client.poll_connect)
        assert client.state == ConnectionState.CONNECTED
        assert client.is_client_connected()

    def test_refused(self, client, wait_for):
        """Test a refused connect ends in CLOSED instead of a fake success."""
        client.start(closed_port(), "127.0.0.1")

        assert wait_for(lambda: client.poll_connect() or not client.is_connecting())
        assert client.state == ConnectionState.CLOSED
        assert not client.is_client_connected()
        assert "Connect failed." in client.get_error()

    def test_invalid_address(self, client):
        result = client.start(8080, "not-an-ip")

        assert not result
        assert result.error.kind is ErrorKind.USAGE
        assert client.state == ConnectionState.CLOSED

    @pytest.mark.parametrize("port", [-1, 65536, 70000])
    def test_invalid_port(self, client, port):
        result = client.start(port, "127.0.0.1")

        assert not result
        assert result.error.kind is ErrorKind.USAGE
        assert client.state == ConnectionState.CLOSED
        assert not client.is_client_connected()
        assert client.get_error() == f"TCPClient error: Invalid port: {port}"

    def test_update_before_start(self, client):
        result = client.update(b"data", 16)
        assert not result
        assert result.error.kind is ErrorKind.NOT_CONNECTED

    def test_close_idempotent(self, connected):
        client, _ = connected
        client.client_close()
        client.client_close()

        assert client.state == ConnectionState.CLOSED
        assert not client.is_client_connected()


class TestUpdate:
    """Test update() send/receive."""

    def test_send(self, connected):
        client, conn = connected

        assert client.update(b"ping")
        assert conn.recv(16) == b"ping"

    def test_receive(self, connected, wait_for):
        client, conn = connected
        conn.sendall(b"pong")
        received = []

        def poll():
            result = client.update(b"", 16)
            received.append(result.data)
            return b"".join(received) == b"pong"

        assert wait_for(poll)

    def test_nothing_to_receive(self, connected):
        client, _ = connected
        result = client.update(b"", 16)
        assert result
        assert result.pending

    def test_server_disconnect(self, connected, wait_for):
        """Test a zero-length receive closes the client."""
        client, conn = connected
        conn.close()

        assert wait_for(lambda: not client.update(b"", 16))
        assert client.state == ConnectionState.CLOSED
        assert client.last_error.kind is ErrorKind.DISCONNECTED


class TestStaging:
    """Test the client's staging buffers."""

    def test_flush(self, connected):
        client, conn = connected
        client.push_back_tx_buffer(b"one,")
        client.push_back_tx_buffer(b"two")

        assert client.flush()
        assert client.tx_buffer.is_empty()
        assert conn.recv(16) == b"one,two"

    def test_read_into_buffer(self, connected, wait_for):
        client, conn = connected
        conn.sendall(b"abc")

        assert wait_for(lambda: client.available() == 3)
        assert client.read_into_buffer()
        assert client.pop_all_rx_buffer() == b"abc"
