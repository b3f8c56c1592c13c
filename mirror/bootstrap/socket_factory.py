"""Listening socket creation."""

import argparse
import socket

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(args: argparse.Namespace) -> socket.socket:
    """Create the listening socket with a short accept timeout.

    The timeout lets the accept loop notice a shutdown request between
    connections.
    """
    server_socket = socket.create_server((args.host, args.port), reuse_port=True)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
