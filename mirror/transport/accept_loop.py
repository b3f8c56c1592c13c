"""Listening loop that hands each accepted client to its own mirror thread."""

import argparse
import logging
import socket
import threading
from typing import Iterator

from mirror.bootstrap.config import ServerConfig
from mirror.bootstrap.socket_factory import create_server_socket
from mirror.domain.connection_id import ConnectionLoggerAdapter
from mirror.domain.http_types import HttpResponse
from mirror.domain.response_builders import (
    connection_limited_response,
    draining_response,
)
from mirror.lifecycle.state import ServerLifecycle
from mirror.pipeline.io import send_response
from mirror.transport.connection_limiter import GLOBAL_LIMIT, ConnectionLimiter
from mirror.transport.context import WorkerContext
from mirror.transport.worker import handle_client

ACCEPT_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("http_mirror.transport.accept"), {}
)

Accepted = tuple[socket.socket, tuple[str, int]]


def _accepted_clients(
    server_socket: socket.socket, lifecycle: ServerLifecycle
) -> Iterator[Accepted]:
    """Yield accepted clients until the lifecycle asks the loop to stop.

    The listening socket has a short timeout, so a shutdown signal is noticed
    within one poll interval even when no clients arrive.
    """
    while True:
        try:
            yield server_socket.accept()
        except socket.timeout:
            if lifecycle.should_stop():
                return
        except OSError as error:
            if lifecycle.should_stop():
                return
            ACCEPT_LOGGER.error(
                "Socket accept failed",
                extra={"event": "accept_error", "error_type": type(error).__name__},
            )


def _reject(client_socket: socket.socket, response: HttpResponse) -> None:
    """Send a fixed refusal and close, ignoring clients that already left."""
    try:
        send_response(client_socket, response)
    except OSError as error:
        ACCEPT_LOGGER.debug(
            "Failed to send refusal",
            extra={"event": "refusal_failed", "error_type": type(error).__name__},
        )
    finally:
        client_socket.close()


def _dispatch(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    ACCEPT_LOGGER.debug(
        "Client connection accepted",
        extra={"event": "client_accepted", "client": client_addr_str},
    )

    limiter = context.connection_limiter
    if limiter is not None:
        allowed, limit_type = limiter.acquire(client_address[0])
        if not allowed:
            ACCEPT_LOGGER.warning(
                "Connection limit reached",
                extra={
                    "event": (
                        "connection_limit_reached"
                        if limit_type == GLOBAL_LIMIT
                        else "per_ip_limit_reached"
                    ),
                    "client": client_addr_str,
                    "limit_type": limit_type,
                },
            )
            _reject(client_socket, connection_limited_response(limit_type))
            return

    threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        daemon=False,
    ).start()


def _drain(config: ServerConfig, lifecycle: ServerLifecycle) -> None:
    ACCEPT_LOGGER.info(
        "Waiting for active connections to complete",
        extra={
            "event": "shutdown_waiting",
            "grace_seconds": config.shutdown_grace_seconds,
            "remaining_workers": lifecycle.active_worker_count(),
        },
    )
    lifecycle.wait_for_workers(config.shutdown_grace_seconds)
    ACCEPT_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})


def run_server(
    args: argparse.Namespace, config: ServerConfig, lifecycle: ServerLifecycle
) -> None:
    """Accept connections until shutdown, then wait for in-flight mirrors."""
    server_socket = create_server_socket(args)
    ACCEPT_LOGGER.info(
        "Mirror listening for connections",
        extra={"event": "server_listening", "host": args.host, "port": args.port},
    )
    context = WorkerContext(
        connection_limiter=ConnectionLimiter(
            args.max_connections, args.max_connections_per_ip
        ),
        lifecycle=lifecycle,
        config=config,
    )

    try:
        for client_socket, client_address in _accepted_clients(
            server_socket, lifecycle
        ):
            if lifecycle.is_draining():
                _reject(client_socket, draining_response())
            else:
                _dispatch(client_socket, client_address, context)
    finally:
        server_socket.close()
        _drain(config, lifecycle)
