"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


DEFAULT_PORT = 8081
DEFAULT_MAX_CONNECTIONS = _env_int("HTTP_MIRROR_MAX_CONNECTIONS", 200)
DEFAULT_MAX_CONNECTIONS_PER_IP = _env_int("HTTP_MIRROR_MAX_CONNECTIONS_PER_IP", 0)
DEFAULT_SOCKET_TIMEOUT = _env_int("HTTP_MIRROR_SOCKET_TIMEOUT", 0)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("HTTP_MIRROR_SHUTDOWN_GRACE_SECONDS", 30)

LOG_FORMATS = ("json", "text")


@dataclass
class ServerConfig:
    """Server configuration including timeouts and shutdown settings."""

    socket_timeout: int
    shutdown_grace_seconds: int

    @property
    def read_timeout(self) -> Optional[float]:
        """Per-connection socket timeout, or None to block indefinitely."""
        if self.socket_timeout > 0:
            return float(self.socket_timeout)
        return None


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(description="HTTP mirror server")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    default_log_level = os.getenv("HTTP_MIRROR_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("HTTP_MIRROR_LOG_DESTINATION", "stdout")
    default_log_format = os.getenv("HTTP_MIRROR_LOG_FORMAT", "json").lower()
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=default_log_format,
        choices=LOG_FORMATS,
        type=str.lower,
        help="Structured JSON lines or plain text",
    )
    parser.add_argument(
        "--max-connections",
        type=int,
        default=DEFAULT_MAX_CONNECTIONS,
        help="Maximum concurrent connections (0 for unlimited)",
    )
    parser.add_argument(
        "--max-connections-per-ip",
        type=int,
        default=DEFAULT_MAX_CONNECTIONS_PER_IP,
        help="Maximum concurrent connections per client IP (0 for unlimited)",
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket read/write timeout in seconds (0 blocks indefinitely)",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    return parser.parse_args(argv)
