"""Listening socket creation."""

import socket

ACCEPT_POLL_INTERVAL = 0.5
LISTEN_BACKLOG = 128


def create_server_socket(host: str, port: str) -> socket.socket:
    """Bind and listen on host:port, polling accept so shutdown is noticed.

    Raises ValueError for a non-numeric port and OSError when binding fails.
    """
    port_number = int(port)
    server_socket = socket.create_server((host, port_number), backlog=LISTEN_BACKLOG)
    server_socket.settimeout(ACCEPT_POLL_INTERVAL)
    return server_socket
