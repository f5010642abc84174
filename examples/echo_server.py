#!/usr/bin/env python3
"""
TCP Echo Server Example

A polling echo server that demonstrates:
- Starting by IP address or by interface name
- Accepting one client at a time without blocking
- Staging received data in the RX buffer
- Queuing replies in the TX buffer and flushing them
- Detecting client disconnection

Run this server, then connect with the echo client.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tcpnet import TCPServer
import logging
import time

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def echo_server(host: str = "127.0.0.1", port: int = 8080,
                interface: str = "", interval: float = 0.01):
    """
    Run a TCP echo server.

    The loop never blocks; each iteration:
    1. Accepts a client if none is connected
    2. Pulls whatever the client sent into the RX buffer
    3. Moves it to the TX buffer and flushes it back
    4. Sleeps for `interval` seconds
    """
    server = TCPServer()

    if interface:
        result = server.start_by_name(port, interface)
    else:
        result = server.start_by_ip(port, host)

    if not result:
        server.print_error()
        return

    print(f"Listening on {server.ip}:{server.port}")
    connected = False

    try:
        while True:
            result = server.poll()

            if server.is_client_connected():
                if not connected:
                    print(f"Accepted connection from {server.client_address[0]}:{server.client_address[1]}")
                    connected = True

                if len(server.rx_buffer):
                    data = server.pop_all_rx_buffer()
                    print(f"Received {len(data)} bytes: {data[:50]!r}")
                    server.push_back_tx_buffer(data)

                if not server.flush():
                    server.print_error()

            elif connected:
                print("Client disconnected")
                connected = False

            elif not result and not result.pending:
                server.print_error()

            time.sleep(interval)

    except KeyboardInterrupt:
        print("\nShutting down server...")
    finally:
        server.server_close()
        print("Server closed")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="TCP Echo Server")
    parser.add_argument("--host", default="127.0.0.1", help="IP address to bind to")
    parser.add_argument("--port", type=int, default=8080, help="Port to listen on")
    parser.add_argument("--interface", default="", help="Bind to this interface's address instead of --host")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args()

    if not args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    echo_server(args.host, args.port, args.interface)
