"""
TCP Client - Non-blocking client with verified connect.

A non-blocking connect() returns before the handshake finishes. The client
therefore sits in CONNECTING until the socket turns writable, and only then
reads SO_ERROR to learn whether the connection actually succeeded:

    client = TCPClient()
    client.start(8080, "127.0.0.1")        # CONNECTING (or CONNECTED)

    while running:
        result = client.update(b"ping", 1024)
        if not result:
            break                           # server gone, client is CLOSED
        if result.data:
            handle(result.data)
        time.sleep(0.01)

    client.client_close()
"""

import logging
import os

from .adapter import SocketAdapter, validate_ipv4, validate_port
from .endpoint import Endpoint
from .errors import ErrorKind, IOResult, NetError
from .states import ConnectionState, Role


logger = logging.getLogger(__name__)


class TCPClient(Endpoint):
    """
    Client endpoint.

    States: CLOSED -> CONNECTING -> CONNECTED -> CLOSED
    """

    ROLE = Role.CLIENT
    ERROR_PREFIX = "TCPClient"

    def start(self, port: int, ip: str) -> IOResult:
        """
        Begin connecting to (ip, port) without blocking.

        Returns:
            Success if connected right away, a pending success if the
            handshake is in progress, a failure otherwise
        """
        if not validate_port(port):
            return self._fail(ErrorKind.USAGE, f"Invalid port: {port}")

        if self.state.is_open():
            self.client_close()

        self.ip = ip
        self.port = port

        try:
            self._peer = SocketAdapter.create()
        except OSError as e:
            return self._fail(ErrorKind.FATAL, f"Error creating socket. {e.strerror or e}", e.errno)

        try:
            self._peer.set_nonblocking()
        except OSError as e:
            self._peer.close()
            return self._fail(
                ErrorKind.FATAL, f"Error setting socket to non-blocking. {e.strerror or e}", e.errno
            )

        if not validate_ipv4(ip):
            self._peer.close()
            return self._fail(ErrorKind.USAGE, "Invalid address or address not supported")

        result = self._peer.connect((ip, port))
        if not result.ok:
            self._peer.close()
            return self._errors.record_result(result)

        self._state_machine.transition("connect")
        if not result.pending:
            self._state_machine.transition("connect_complete")

        logger.debug(f"Connecting to {ip}:{port}")
        return result

    def poll_connect(self) -> bool:
        """
        Advance a pending connect.

        Returns:
            True once the connection is established
        """
        if self.state != ConnectionState.CONNECTING:
            return self.state == ConnectionState.CONNECTED

        try:
            code = self._peer.connect_error()
        except OSError as e:
            code = e.errno

        if code is None:
            return False

        if code == 0:
            self._state_machine.transition("connect_complete")
            logger.debug(f"Connected to {self.ip}:{self.port}")
            return True

        self._peer.close()
        self._errors.record(NetError(ErrorKind.FATAL, f"Connect failed. {os.strerror(code)}", code))
        self._state_machine.transition("connect_failed")
        return False

    def update(self, tx_data: bytes = b"", rx_size: int = 0) -> IOResult:
        """
        Send tx_data (if any), then receive up to rx_size bytes (if > 0).

        Returns:
            IOResult carrying the received data. A pending result means the
            connection is still being established or there was nothing to do.
        """
        self._advance_lifecycle()
        if self.state == ConnectionState.CONNECTING:
            return IOResult.would_block()
        if not self._peer_ready():
            return self._fail(ErrorKind.NOT_CONNECTED, "Client is not connected.")

        if tx_data:
            sent = self.write(tx_data)
            if not sent.ok:
                return sent

        if rx_size > 0:
            return self.read(rx_size)

        return IOResult.success()

    def is_client_connected(self) -> bool:
        self._advance_lifecycle()
        return self._peer_ready()

    def is_connecting(self) -> bool:
        return self.state == ConnectionState.CONNECTING

    def client_close(self):
        """Close the connection. Safe to call repeatedly."""
        self._peer.close()
        self._state_machine.transition("close")

    def close(self):
        self.client_close()

    # ========== Internal Methods ==========

    def _advance_lifecycle(self):
        if self.state == ConnectionState.CONNECTING:
            self.poll_connect()

    def __repr__(self) -> str:
        return f"TCPClient(-> {self.ip}:{self.port}, {self.state.name})"
