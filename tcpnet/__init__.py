"""
tcpnet - Non-blocking TCP server and client with staging buffers.

This package wraps raw OS sockets in a small polling-friendly API:
a single-client server, a client with verified non-blocking connect,
bounded RX/TX staging buffers, and structured results for every operation.
"""

from .buffer import ByteChannel
from .errors import ErrorKind, ErrorState, IOResult, NetError
from .states import ConnectionState, LifecycleStateMachine, Role
from .adapter import SocketAdapter
from .interfaces import get_ip_address_by_interface, check_link_status
from .endpoint import Endpoint, EndpointConfig, LIBRARY_VERSION
from .server import TCPServer
from .client import TCPClient

__version__ = LIBRARY_VERSION

__all__ = [
    "ByteChannel",
    "ErrorKind",
    "ErrorState",
    "IOResult",
    "NetError",
    "ConnectionState",
    "LifecycleStateMachine",
    "Role",
    "SocketAdapter",
    "get_ip_address_by_interface",
    "check_link_status",
    "Endpoint",
    "EndpointConfig",
    "TCPServer",
    "TCPClient",
]
