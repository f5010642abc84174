"""
Endpoint - What servers and clients have in common.

An endpoint owns:
- one peer socket (the accepted client on a server, the connection on a client)
- an RX and a TX staging buffer
- a lifecycle state machine
- a last-error slot

The read/write paths all follow the same rule: whatever the adapter reports,
a DISCONNECTED or FATAL outcome on the peer socket releases it and moves the
state machine along "peer_lost". Zero-length reads, resets and hang-ups are
therefore handled identically in every direction.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .adapter import SocketAdapter
from .buffer import ByteChannel, DEFAULT_CAPACITY
from .errors import ErrorKind, ErrorState, IOResult, NetError
from .interfaces import SYSFS_NET_ROOT, check_link_status
from .states import ConnectionState, LifecycleStateMachine, Role


logger = logging.getLogger(__name__)


LIBRARY_VERSION = "1.1.0"


@dataclass
class EndpointConfig:
    """Configuration options for a server or client endpoint."""

    # Staging buffer capacities (bytes)
    rx_buffer_size: int = DEFAULT_CAPACITY
    tx_buffer_size: int = DEFAULT_CAPACITY

    # Pending connection queue length for listen()
    backlog: int = 10

    # Socket options applied to the listening socket
    reuse_address: bool = True
    reuse_port: bool = True

    # Accept a waiting client as a side effect of write() with no peer
    auto_accept: bool = False

    # Where link status files live
    sysfs_net_root: str = SYSFS_NET_ROOT


class Endpoint:
    """Base class of TCPServer and TCPClient."""

    ROLE = Role.SERVER
    ERROR_PREFIX = ""

    def __init__(self, config: Optional[EndpointConfig] = None):
        """
        Initialize the endpoint. No socket is created until start.

        Args:
            config: Endpoint configuration options
        """
        self.config = config or EndpointConfig()

        # Bound (server) or target (client) address
        self.ip = ""
        self.port = 0

        self._peer = SocketAdapter()
        self._rx_buffer = ByteChannel(self.config.rx_buffer_size)
        self._tx_buffer = ByteChannel(self.config.tx_buffer_size)
        self._errors = ErrorState(self.ERROR_PREFIX)
        self._state_machine = LifecycleStateMachine(self.ROLE)

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state_machine.state

    @property
    def last_error(self) -> Optional[NetError]:
        return self._errors.last

    def get_error(self) -> str:
        """Return the last recorded error message."""
        return self._errors.message

    def print_error(self):
        print(self._errors.message)

    def get_version(self) -> str:
        return LIBRARY_VERSION

    def on_transition(self, callback):
        """Register a callback(old_state, new_state, event) for state changes."""
        self._state_machine.on_transition(callback)

    def check_link_status(self, interface_name: str) -> bool:
        """
        Check if a cable is physically connected to an interface.

        Returns False (and records an error) if the carrier file can't be read.
        """
        try:
            return check_link_status(interface_name, self.config.sysfs_net_root)
        except OSError as e:
            self._fail(
                ErrorKind.FATAL,
                f"Error opening carrier file for interface: {interface_name}",
                e.errno
            )
            return False

    # ========== Hooks ==========

    def close(self):
        raise NotImplementedError

    def _advance_lifecycle(self):
        """Called before every I/O operation to move pending transitions along."""

    def _on_idle_write(self) -> IOResult:
        """Called when write() finds no peer; its result is write()'s result."""
        return IOResult.would_block()

    def _peer_ready(self) -> bool:
        return self._peer.is_open and self.state.has_peer()

    # ========== Data Transfer ==========

    def read(self, size: int) -> IOResult:
        """
        Receive up to `size` bytes from the peer.

        Returns:
            IOResult with the received data; pending if nothing is there yet
        """
        if size <= 0:
            return self._fail(ErrorKind.USAGE, "rxSize is zero value.")

        self._advance_lifecycle()
        if not self._peer_ready():
            if self.state == ConnectionState.CONNECTING:
                return IOResult.would_block()
            return self._fail(ErrorKind.NOT_CONNECTED, "No peer connected.")

        return self._handle_peer_result(self._peer.recv(size))

    def read_available(self) -> IOResult:
        """
        Receive everything the kernel currently holds, up to the RX capacity.
        """
        count = self.available()
        if count < 0:
            return IOResult(ok=False, error=self.last_error)

        size = min(count, self._rx_buffer.capacity)
        if size == 0:
            return IOResult.success()

        return self.read(size)

    def read_into_buffer(self) -> IOResult:
        """Receive everything available and append it to the RX buffer."""
        result = self.read_available()
        if result.data:
            self._rx_buffer.push_back(result.data)
        return result

    def write(self, data: bytes) -> IOResult:
        """
        Send data to the peer if the socket is writable right now.

        With no peer this does nothing and returns a pending result (a server
        that is not listening fails instead). Data that could not be sent is
        NOT queued; use push_back_tx_buffer() and flush() for that.
        """
        self._advance_lifecycle()
        if not self._peer_ready():
            return self._on_idle_write()

        return self._handle_peer_result(self._peer.send(bytes(data)))

    def flush(self) -> IOResult:
        """
        Send the TX buffer.

        Bytes that went out are removed from the buffer; anything unsent
        stays queued for the next flush.
        """
        if self._tx_buffer.is_empty():
            return IOResult.success()

        result = self.write(self._tx_buffer.peek())
        self._tx_buffer.remove_front(result.count)
        return result

    def available(self) -> int:
        """
        Bytes waiting to be read on the peer socket.

        Returns 0 without a peer, -1 if the query itself failed.
        """
        if not self._peer_ready():
            return 0

        try:
            return self._peer.available()
        except OSError as e:
            self._fail(ErrorKind.FATAL, "ioctl failed", e.errno)
            return -1

    # ========== Staging Buffers ==========

    @property
    def rx_buffer(self) -> ByteChannel:
        return self._rx_buffer

    @property
    def tx_buffer(self) -> ByteChannel:
        return self._tx_buffer

    def set_rx_buffer_size(self, size: int = DEFAULT_CAPACITY):
        self._rx_buffer.set_capacity(size)

    def set_tx_buffer_size(self, size: int = DEFAULT_CAPACITY):
        self._tx_buffer.set_capacity(size)

    def push_back_rx_buffer(self, data: bytes):
        self._rx_buffer.push_back(data)

    def push_back_tx_buffer(self, data: bytes):
        self._tx_buffer.push_back(data)

    def pop_front_rx_buffer(self, size: int) -> bytes:
        return self._rx_buffer.pop_front(size)

    def pop_all_rx_buffer(self) -> bytes:
        return self._rx_buffer.pop_all()

    def remove_front_rx_buffer(self, size: int):
        self._rx_buffer.remove_front(size)

    def remove_front_tx_buffer(self, size: int):
        self._tx_buffer.remove_front(size)

    def remove_all_rx_buffer(self):
        self._rx_buffer.remove_all()

    def remove_all_tx_buffer(self):
        self._tx_buffer.remove_all()

    # ========== Internal Methods ==========

    def _fail(self, kind: ErrorKind, message: str,
              err_no: Optional[int] = None, count: int = 0) -> IOResult:
        """Record an error and return it as a failed result."""
        result = IOResult.failure(kind, message, err_no, count)
        self._errors.record(result.error)
        return result

    def _handle_peer_result(self, result: IOResult) -> IOResult:
        """Record failures and release the peer if the failure is terminal."""
        if result.ok:
            return result

        self._errors.record_result(result)
        if result.error is not None and result.error.kind.tears_down():
            self._release_peer("peer_lost")
        return result

    def _release_peer(self, event: str):
        self._peer.close()
        self._state_machine.transition(event)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
