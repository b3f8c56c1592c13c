"""Stream primitives used while mirroring a request."""

import logging
import select
import socket
from typing import Any, BinaryIO, Callable, Optional

from mirror.domain.connection_id import ConnectionLoggerAdapter
from mirror.domain.framing_types import HEADER_END_NOT_FOUND, HeaderEnd
from mirror.domain.http_types import HttpResponse
from mirror.pipeline.framing import HEADER_CHARSET, find_header_end

IO_LOGGER = ConnectionLoggerAdapter(logging.getLogger("http_mirror.io"), {})

READ_CHUNK_SIZE = 1024


def read_header_block(reader: BinaryIO) -> tuple[str, HeaderEnd]:
    """Read until the accumulated text contains a blank line or input ends.

    Each search resumes at the start of the last unterminated line, so a
    terminator split across two reads is still found without rescanning
    lines already known not to be blank. Any body bytes that arrived with
    the final read stay in the returned text.
    """
    header_text = ""
    header_end = HEADER_END_NOT_FOUND
    line_start = 0
    while not header_end.found:
        chunk = reader.read(READ_CHUNK_SIZE)
        if not chunk:
            IO_LOGGER.debug(
                "Input ended before header terminator",
                extra={"event": "headers_truncated", "bytes_in": len(header_text)},
            )
            break
        header_text += chunk.decode(HEADER_CHARSET)
        header_end = find_header_end(header_text, line_start)
        last_break = header_text.rfind("\n", line_start)
        if last_break != -1:
            line_start = last_break + 1
    return header_text, header_end


def forward_known_length(
    reader: BinaryIO, writer: BinaryIO, length: int, already_forwarded: int
) -> int:
    """Copy body bytes until ``length`` have been forwarded or input ends."""
    forwarded = already_forwarded
    while forwarded < length:
        chunk = reader.read(min(READ_CHUNK_SIZE, length - forwarded))
        if not chunk:
            break
        writer.write(chunk)
        forwarded += len(chunk)
    return forwarded


def forward_available(
    reader: BinaryIO, writer: BinaryIO, is_available: Callable[[], bool]
) -> int:
    """Copy bytes only while input is immediately readable."""
    forwarded = 0
    while is_available():
        chunk = reader.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        writer.write(chunk)
        forwarded += len(chunk)
    return forwarded


def input_available(connection: socket.socket) -> bool:
    """Return True when a read on the connection would not block."""
    readable, _, _ = select.select([connection], [], [], 0)
    return bool(readable)


def close_quietly(resource: Optional[Any], name: str) -> None:
    """Close a stream or socket, logging instead of raising on failure."""
    if resource is None:
        return
    try:
        resource.close()
    except OSError as error:
        IO_LOGGER.debug(
            "Failed to close resource",
            extra={
                "event": "close_failed",
                "resource": name,
                "error_type": type(error).__name__,
            },
        )


def encode_head(response: HttpResponse) -> bytes:
    """Serialize the status line and headers, ending with the blank line."""
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    return "\r\n".join(header_lines).encode(HEADER_CHARSET) + b"\r\n\r\n"


def send_response(client_socket: socket.socket, response: HttpResponse) -> None:
    """Send a complete fixed-length response over the socket."""
    headers = dict(response.headers)
    headers["Content-Length"] = str(len(response.body))
    head = encode_head(HttpResponse(response.status_line, headers))
    client_socket.sendall(head + response.body)
    IO_LOGGER.debug(
        "Sent response",
        extra={
            "status": response.status_line,
            "bytes_out": len(head) + len(response.body),
        },
    )
