"""
Socket Adapter - Non-blocking operations on a single socket.

SocketAdapter wraps one OS socket and turns every syscall outcome into an
IOResult:

- accept/connect/recv/send never block
- "would block" comes back as a pending result, never as a failure
- resets, broken pipes, hang-ups and zero-length reads come back as
  DISCONNECTED so the owner can release the socket

The adapter never changes lifecycle state itself; that is the endpoint's job.
"""

import logging
import os
import select
import socket
import struct
import fcntl
import termios
from typing import Optional, Tuple

from .errors import ErrorKind, IOResult, NetError, classify_errno


logger = logging.getLogger(__name__)


ABSENT = -1
MAX_PORT = 65535


def validate_port(port: int) -> bool:
    return isinstance(port, int) and 0 <= port <= MAX_PORT


def validate_ipv4(ip: str) -> bool:
    """Check that `ip` is a dotted-quad IPv4 address."""
    try:
        socket.inet_pton(socket.AF_INET, ip)
    except (OSError, TypeError):
        return False
    return True


class SocketAdapter:
    """
    A single non-blocking socket.

    Usage:
        listener = SocketAdapter.create()
        listener.sock.bind(("127.0.0.1", 8080))
        listener.sock.listen(10)
        result, peer = listener.accept()

        peer.send(b"Hello")
        result = peer.recv(1024)
        peer.close()
    """

    def __init__(self, sock: Optional[socket.socket] = None):
        self._sock = sock

    @classmethod
    def create(cls) -> "SocketAdapter":
        """Create a new IPv4 stream socket. Raises OSError on failure."""
        return cls(socket.socket(socket.AF_INET, socket.SOCK_STREAM))

    @property
    def sock(self) -> Optional[socket.socket]:
        return self._sock

    @property
    def fileno(self) -> int:
        """Descriptor number, -1 if no socket is held."""
        if self._sock is None:
            return ABSENT
        return self._sock.fileno()

    @property
    def is_open(self) -> bool:
        return self.fileno != ABSENT

    def set_nonblocking(self):
        """Switch the socket to non-blocking mode. Raises OSError on failure."""
        self._sock.setblocking(False)

    # ========== Lifecycle ==========

    def accept(self) -> Tuple[IOResult, Optional["SocketAdapter"], Optional[Tuple[str, int]]]:
        """
        Accept one pending connection.

        Returns:
            (result, peer, address). peer is None unless a connection was
            accepted; a pending result means nobody is waiting.
        """
        if not self.is_open:
            return IOResult.failure(ErrorKind.NOT_CONNECTED, "Accept on a closed socket."), None, None

        try:
            conn, address = self._sock.accept()
        except OSError as e:
            return IOResult.from_os_error(e, "Accept client failed."), None, None

        return IOResult.success(), SocketAdapter(conn), address

    def connect(self, address: Tuple[str, int]) -> IOResult:
        """
        Start a non-blocking connect.

        A successful result is either complete (connected right away) or
        pending (EINPROGRESS): completion must be confirmed with
        connect_error() once the socket becomes writable.
        """
        if not self.is_open:
            return IOResult.failure(ErrorKind.NOT_CONNECTED, "Connect on a closed socket.")

        code = self._sock.connect_ex(address)
        if code == 0:
            return IOResult.success()

        kind = classify_errno(code)
        if kind is ErrorKind.TRANSIENT:
            return IOResult.would_block()
        return IOResult(ok=False, error=NetError(kind, f"Connect failed. {os.strerror(code)}", code))

    def connect_error(self) -> Optional[int]:
        """
        Check a pending connect.

        Returns:
            None while the connect is still in flight, otherwise the
            SO_ERROR value (0 means connected)
        """
        events = self.poll(select.POLLOUT)
        if events is None:
            return None
        return self._sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)

    def close(self):
        """Release the socket. Closing an absent socket does nothing."""
        if self._sock is None:
            return
        fd = self._sock.fileno()
        try:
            self._sock.close()
        finally:
            self._sock = None
        logger.debug(f"Closed socket fd={fd}")

    # ========== Data Transfer ==========

    def recv(self, size: int) -> IOResult:
        """
        Receive up to `size` bytes.

        A zero-length read means the peer closed the connection and is
        reported as DISCONNECTED.
        """
        if size <= 0:
            return IOResult.failure(ErrorKind.USAGE, "rxSize is zero value.")

        if not self.is_open:
            return IOResult.failure(ErrorKind.NOT_CONNECTED, "No client connected.")

        try:
            data = self._sock.recv(size)
        except OSError as e:
            return IOResult.from_os_error(e, "Error receiving message.")

        if not data:
            return IOResult.failure(ErrorKind.DISCONNECTED, "Client disconnected.")

        if len(data) > size:
            return IOResult.failure(
                ErrorKind.PROTOCOL,
                "Error receiving message. bytesRead is more than rxSize"
            )

        return IOResult.success(data)

    def peek_alive(self) -> IOResult:
        """
        Check the peer without consuming data.

        Only a zero-length peek, a reset or a broken pipe count as
        disconnection; anything else (including no data yet) means alive.
        """
        if not self.is_open:
            return IOResult.failure(ErrorKind.NOT_CONNECTED, "No client connected.")

        try:
            data = self._sock.recv(1, socket.MSG_PEEK)
        except OSError as e:
            if classify_errno(e.errno) is ErrorKind.DISCONNECTED:
                return IOResult.failure(
                    ErrorKind.DISCONNECTED, "Connection reset by peer.", e.errno
                )
            return IOResult.would_block()

        if not data:
            return IOResult.failure(ErrorKind.DISCONNECTED, "Client disconnected.")
        return IOResult.success()

    def send(self, data: bytes) -> IOResult:
        """
        Send data if the socket is writable right now.

        Partial sends are reported as PARTIAL_WRITE with the number of bytes
        that did go out; the remainder is not retried.
        """
        if not self.is_open:
            return IOResult.failure(ErrorKind.NOT_CONNECTED, "No client connected.")

        try:
            events = self.poll(select.POLLOUT | select.POLLHUP)
        except OSError as e:
            return IOResult(ok=False, error=NetError(ErrorKind.FATAL, "Poll error.", e.errno))

        if events is None:
            return IOResult.would_block()

        if events & select.POLLHUP:
            return IOResult.failure(ErrorKind.DISCONNECTED, "Client disconnected.")

        if not events & select.POLLOUT:
            return IOResult.would_block()

        try:
            sent = self._sock.send(data)
        except OSError as e:
            return IOResult.from_os_error(e, "Error sending message.")

        if sent < len(data):
            return IOResult.failure(
                ErrorKind.PARTIAL_WRITE,
                "Partial write. Not all data was sent.",
                count=sent
            )

        return IOResult.success(count=sent)

    def available(self) -> int:
        """Bytes the kernel holds for us to read. Raises OSError on failure."""
        raw = fcntl.ioctl(self.fileno, termios.FIONREAD, struct.pack("i", 0))
        return struct.unpack("i", raw)[0]

    def poll(self, events: int) -> Optional[int]:
        """
        Zero-timeout poll of this socket.

        Returns:
            The returned event mask, or None if nothing is ready
        """
        poller = select.poll()
        poller.register(self._sock, events)
        ready = poller.poll(0)
        if not ready:
            return None
        return ready[0][1]

    def __repr__(self) -> str:
        return f"SocketAdapter(fd={self.fileno})"
