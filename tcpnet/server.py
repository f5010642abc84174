"""
TCP Server - Non-blocking single-client server.

The server owns a listening socket and at most one accepted peer:

    server = TCPServer()
    server.start_by_ip(8080, "192.168.1.100")

    while running:
        server.accept_client()              # no-op once a client is held
        if server.is_client_connected():
            server.read_into_buffer()
            server.write(server.pop_all_rx_buffer())
        time.sleep(0.01)

    server.server_close()

Nothing here ever blocks. "No client yet" and "no data yet" are steady states
the caller keeps polling through.
"""

import logging
import socket
from typing import Optional, Tuple

from .adapter import SocketAdapter, validate_ipv4, validate_port
from .endpoint import Endpoint, EndpointConfig
from .errors import ErrorKind, IOResult
from .interfaces import get_ip_address_by_interface
from .states import ConnectionState, Role


logger = logging.getLogger(__name__)


class TCPServer(Endpoint):
    """
    Server endpoint.

    States: CLOSED -> LISTENING <-> CONNECTED -> CLOSED
    """

    ROLE = Role.SERVER
    ERROR_PREFIX = "TCPServer"

    def __init__(self, config: Optional[EndpointConfig] = None):
        super().__init__(config)
        self._listener = SocketAdapter()

        self.interface_name = ""
        self.client_address: Optional[Tuple[str, int]] = None

    # ========== Lifecycle ==========

    def start_by_ip(self, port: int, ip: str) -> IOResult:
        """
        Start listening on (ip, port) in non-blocking mode.

        Port 0 picks an ephemeral port; `self.port` holds the bound port
        afterwards. Any failing step closes every socket the server holds.
        """
        if not validate_port(port):
            return self._fail(ErrorKind.USAGE, f"Invalid port: {port}")

        if self.state.is_open():
            logger.debug("Server restarted, closing previous sockets")
            self.server_close()

        self.ip = ip
        self.port = port

        try:
            self._listener = SocketAdapter.create()
        except OSError as e:
            return self._abort_start(ErrorKind.FATAL, "Error creating server socket.", e)

        sock = self._listener.sock

        try:
            if self.config.reuse_address:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if self.config.reuse_port and hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except OSError as e:
            return self._abort_start(ErrorKind.FATAL, "Error setting socket options.", e)

        try:
            self._listener.set_nonblocking()
        except OSError as e:
            return self._abort_start(ErrorKind.FATAL, "Error setting socket to non-blocking.", e)

        if not validate_ipv4(ip):
            return self._abort_start(ErrorKind.USAGE, "Invalid IP address/ Address not supported")

        try:
            sock.bind((ip, port))
        except OSError as e:
            return self._abort_start(ErrorKind.FATAL, "Bind failed.", e)

        try:
            sock.listen(self.config.backlog)
        except OSError as e:
            return self._abort_start(ErrorKind.FATAL, "Listen failed.", e)

        self.port = sock.getsockname()[1]
        self._state_machine.transition("listen")
        logger.debug(f"Listening on {self.ip}:{self.port}")
        return IOResult.success()

    def start_by_name(self, port: int, interface_name: str) -> IOResult:
        """Start listening on the IPv4 address of a network interface."""
        ip = get_ip_address_by_interface(interface_name)
        if not ip:
            return self._fail(ErrorKind.USAGE, "Invalid interface ethernet name.")

        self.interface_name = interface_name
        return self.start_by_ip(port, ip)

    def accept_client(self) -> IOResult:
        """
        Try to accept a waiting client.

        Returns a pending result when nobody is waiting; that is the normal
        outcome of polling and not an error. Does nothing while a live client
        is held.
        """
        if not self._listener.is_open:
            return self._fail(ErrorKind.NOT_CONNECTED, "Server is not listening.")

        if self.is_client_connected():
            return IOResult.success()

        result, peer, address = self._listener.accept()
        if result.pending:
            return result
        if not result.ok:
            # The listener itself stays open
            return self._errors.record_result(result)

        try:
            peer.set_nonblocking()
        except OSError as e:
            peer.close()
            return self._fail(
                ErrorKind.FATAL, "Error setting client socket to non-blocking.", e.errno
            )

        self._peer = peer
        self.client_address = address
        self._state_machine.transition("accept")
        logger.debug(f"Accepted client {address[0]}:{address[1]}")
        return IOResult.success()

    def client_close(self):
        """Disconnect the current client, keep listening."""
        self._release_peer("drop_peer")

    def server_close(self):
        """Disconnect the client and stop listening. Safe to call repeatedly."""
        self._peer.close()
        self.client_address = None
        self._listener.close()
        self._state_machine.transition("close")

    def close(self):
        self.server_close()

    # ========== State Queries ==========

    def is_listening(self) -> bool:
        return self._listener.is_open

    def is_client_connected(self) -> bool:
        """
        Check the client without consuming its data.

        A client that closed or reset its connection is released here and the
        server goes back to LISTENING.
        """
        if not self._peer.is_open:
            return False

        result = self._peer.peek_alive()
        if result.ok:
            return True

        self._errors.record_result(result)
        self._release_peer("peer_lost")
        return False

    # ========== Data Transfer ==========

    def poll(self) -> IOResult:
        """
        One step of a polling loop.

        Accepts a client if none is held, checks it is still there, and moves
        whatever it sent into the RX buffer.
        """
        if not self.is_listening():
            return self._fail(ErrorKind.NOT_CONNECTED, "Server is not listening.")

        if not self._peer.is_open:
            result = self.accept_client()
            if not self._peer.is_open:
                return result

        if not self.is_client_connected():
            return IOResult(ok=False, error=self.last_error)

        return self.read_into_buffer()

    def read_write(self, tx_data: bytes, rx_size: int) -> IOResult:
        """
        Receive up to rx_size bytes, then send tx_data.

        Returns the read result, or the first failure.
        """
        received = self.read(rx_size)
        if not received.ok:
            return received

        sent = self.write(tx_data)
        if not sent.ok:
            return sent

        return received

    # ========== Internal Methods ==========

    def _peer_ready(self) -> bool:
        return self._listener.is_open and super()._peer_ready()

    def _on_idle_write(self) -> IOResult:
        if not self._listener.is_open:
            return self._fail(ErrorKind.NOT_CONNECTED, "Server is not listening.")
        if self.config.auto_accept and self.state == ConnectionState.LISTENING:
            self.accept_client()
        return IOResult.would_block()

    def _release_peer(self, event: str):
        self.client_address = None
        super()._release_peer(event)

    def _abort_start(self, kind: ErrorKind, message: str,
                     exc: Optional[OSError] = None) -> IOResult:
        """Close everything after a failed start step and report it."""
        self.server_close()
        if exc is not None:
            message = f"{message} {exc.strerror or exc}"
        return self._fail(kind, message, exc.errno if exc is not None else None)

    def __repr__(self) -> str:
        client = f"{self.client_address[0]}:{self.client_address[1]}" if self.client_address else "none"
        return f"TCPServer({self.ip}:{self.port} <- {client}, {self.state.name})"
