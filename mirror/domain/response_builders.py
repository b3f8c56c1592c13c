"""Pure HTTP response builders."""

from typing import Optional

from mirror.domain.http_types import HttpResponse


def mirror_preamble() -> HttpResponse:
    """Return the fixed response head written before any mirrored bytes."""
    return HttpResponse("HTTP/1.0 200 OK", {"Content-Type": "text/plain"})


def connection_limited_response(limit_type: Optional[str]) -> HttpResponse:
    """Produce a 503 response describing which connection quota was exceeded."""
    reason = "connection limit exceeded"
    if limit_type:
        reason = f"{limit_type} connection limit exceeded"
    return HttpResponse(
        "HTTP/1.0 503 Service Unavailable",
        {"Content-Type": "text/plain", "Retry-After": "1"},
        reason.encode(),
    )


def draining_response() -> HttpResponse:
    """Produce a 503 response indicating the server is draining."""
    return HttpResponse(
        "HTTP/1.0 503 Service Unavailable",
        {"Content-Type": "text/plain", "Connection": "close"},
        b"draining",
    )
