"""Worker thread logic for mirroring individual client connections."""

import logging
import socket
import threading
from dataclasses import dataclass

from mirror.domain.connection_id import (
    ConnectionLoggerAdapter,
    clear_connection_id,
    generate_connection_id,
    set_connection_id,
)
from mirror.pipeline.handler import mirror_connection
from mirror.transport.context import WorkerContext

WORKER_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("http_mirror.transport.worker"), {}
)


@dataclass
class _WorkerResources:
    thread: threading.Thread
    client_ip: str
    client_addr_str: str


def _prepare_worker(
    context: WorkerContext,
    client_socket: socket.socket,
    current_thread: threading.Thread,
) -> None:
    if context.lifecycle is not None:
        context.lifecycle.register_worker(current_thread)
    if context.config is not None:
        client_socket.settimeout(context.config.read_timeout)


def _cleanup_worker(context: WorkerContext, resources: _WorkerResources) -> None:
    if context.connection_limiter is not None:
        context.connection_limiter.release(resources.client_ip)
    if context.lifecycle is not None:
        context.lifecycle.cleanup_worker(resources.thread)

    WORKER_LOGGER.debug(
        "Connection released",
        extra={"event": "connection_released", "client": resources.client_addr_str},
    )
    clear_connection_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Mirror the single request carried by ``client_socket``.

    The handler closes the socket itself; this wrapper only maintains the
    bookkeeping shared with the accept loop.
    """
    set_connection_id(generate_connection_id())
    client_ip = client_address[0]
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    current_thread = threading.current_thread()
    resources = _WorkerResources(current_thread, client_ip, client_addr_str)

    WORKER_LOGGER.debug(
        "Connection processing started",
        extra={"event": "connection_started", "client": client_addr_str},
    )
    try:
        _prepare_worker(context, client_socket, current_thread)
        mirror_connection(client_socket)
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
        client_socket.close()
    finally:
        _cleanup_worker(context, resources)
