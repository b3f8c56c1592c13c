"""Identity of the connection a mirror thread is serving.

Each accepted client gets a fresh id when its worker starts. The id lives in
a ``ContextVar`` so every log line emitted while that thread mirrors the
client can be traced back to one TCP connection, without passing the id
through the framing and I/O helpers.
"""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

ROOT_LOGGER_NAME = "http_mirror"
NO_CONNECTION = "-"

_connection_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "connection_id", default=None
)


def generate_connection_id() -> str:
    return str(uuid.uuid4())


def get_connection_id() -> Optional[str]:
    """Id of the connection served by the current thread, if any."""
    return _connection_id_var.get()


def set_connection_id(connection_id: str) -> None:
    _connection_id_var.set(connection_id)


def clear_connection_id() -> None:
    """Forget the connection once its worker has released it."""
    _connection_id_var.set(None)


def component_name(logger_name: str) -> str:
    """Strip the project root so ``http_mirror.io`` is reported as ``io``."""
    prefix = f"{ROOT_LOGGER_NAME}."
    if logger_name.startswith(prefix):
        return logger_name[len(prefix) :]
    return logger_name


class ConnectionLoggerAdapter(logging.LoggerAdapter):
    """Tags records with the serving connection and the emitting component.

    Records logged outside any connection, such as startup and shutdown
    events, carry ``-`` as their connection id.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        connection_id = get_connection_id()
        extra["connection_id"] = (
            connection_id if connection_id is not None else NO_CONNECTION
        )
        extra["component"] = component_name(self.logger.name)
        kwargs["extra"] = extra
        return msg, kwargs
