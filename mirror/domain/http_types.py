"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field


@dataclass
class HttpResponse:
    """Represents an HTTP response head plus an optional fixed body."""

    status_line: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
