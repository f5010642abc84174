"""
Shared fixtures for socket tests.
"""

import socket
import time

import pytest

from tcpnet import TCPServer


def _wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll `predicate` until it returns True or `timeout` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def wait_for():
    return _wait_for


@pytest.fixture
def server():
    """A server listening on an ephemeral loopback port."""
    srv = TCPServer()
    assert srv.start_by_ip(0, "127.0.0.1"), srv.get_error()
    yield srv
    srv.server_close()


@pytest.fixture
def raw_client(server):
    """A plain blocking socket connected to the server fixture."""
    sock = socket.create_connection(("127.0.0.1", server.port), timeout=2.0)
    yield sock
    sock.close()


@pytest.fixture
def socket_pair():
    """Two connected non-blocking stream sockets."""
    a, b = socket.socketpair()
    a.setblocking(False)
    b.setblocking(False)
    yield a, b
    a.close()
    b.close()


class ShortSendSocket(socket.socket):
    """Socket whose first send() only accepts half of the data."""

    short_sends = 1

    def send(self, data, flags=0):
        if self.short_sends > 0:
            self.short_sends -= 1
            data = data[:len(data) // 2]
        return super().send(data, flags)


@pytest.fixture
def short_send_pair():
    """Like socket_pair, but the first socket performs one partial send."""
    a, b = socket.socketpair()
    short = ShortSendSocket(fileno=a.detach())
    short.setblocking(False)
    b.setblocking(False)
    yield short, b
    short.close()
    b.close()
