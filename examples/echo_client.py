#!/usr/bin/env python3
"""
TCP Echo Client Example

A polling echo client that demonstrates:
- Non-blocking connect with completion check
- Sending and receiving through update()
- Detecting that the server went away

Run the echo server first, then run this client.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tcpnet import TCPClient
import logging
import time

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def echo_client(host: str = "127.0.0.1", port: int = 8080,
                message: str = "Hello, TCP!", count: int = 10, interval: float = 0.5):
    """
    Run a TCP echo client.

    Sends `message` every `interval` seconds, `count` times, and prints
    whatever comes back.
    """
    print(f"Connecting to {host}:{port}...")
    client = TCPClient()

    if not client.start(port, host):
        client.print_error()
        return

    try:
        sent = 0
        while sent < count:
            if not client.poll_connect():
                if not client.is_connecting():
                    client.print_error()
                    break
                time.sleep(interval)
                continue

            result = client.update(message.encode('utf-8'), 4096)
            if not result:
                client.print_error()
                break

            sent += 1
            if result.data:
                print(f"Received {len(result.data)} bytes: {result.data.decode('utf-8', 'replace')}")

            time.sleep(interval)

    except KeyboardInterrupt:
        pass
    finally:
        client.client_close()
        print("Connection closed")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="TCP Echo Client")
    parser.add_argument("--host", default="127.0.0.1", help="Server host")
    parser.add_argument("--port", type=int, default=8080, help="Server port")
    parser.add_argument("--message", "-m", default="Hello, TCP!", help="Message to send")
    parser.add_argument("--count", "-n", type=int, default=10, help="Number of messages")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args()

    if not args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    echo_client(args.host, args.port, args.message, args.count)
