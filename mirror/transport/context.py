"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from mirror.bootstrap.config import ServerConfig
from mirror.lifecycle.state import ServerLifecycle
from mirror.transport.connection_limiter import ConnectionLimiter


@dataclass
class WorkerContext:
    """Read-only dependencies handed to every mirror thread."""

    connection_limiter: Optional[ConnectionLimiter] = None
    lifecycle: Optional[ServerLifecycle] = None
    config: Optional[ServerConfig] = None
