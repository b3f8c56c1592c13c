"""Header block inspection and body framing classification."""

import logging
from typing import Iterator, Optional

from mirror.domain.connection_id import ConnectionLoggerAdapter
from mirror.domain.framing_types import (
    HEADER_END_NOT_FOUND,
    BodyFraming,
    Chunked,
    HeaderEnd,
    KnownLength,
    MalformedLengthValue,
    Unknown,
)

FRAMING_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("http_mirror.framing"), {}
)

HEADER_CHARSET = "iso-8859-1"
CONTENT_LENGTH = "Content-Length"
TRANSFER_ENCODING = "Transfer-Encoding"
CHUNKED = "chunked"


def _terminated_lines(text: str, start: int = 0) -> Iterator[tuple[int, str, int]]:
    """Yield ``(offset, line, break_length)`` for every line ending in LF.

    ``start`` must be the offset of a line start; offsets stay absolute.
    """
    while True:
        end = text.find("\n", start)
        if end == -1:
            return
        if end > start and text[end - 1] == "\r":
            yield start, text[start : end - 1], 2
        else:
            yield start, text[start:end], 1
        start = end + 1


def find_header_end(text: str, start: int = 0) -> HeaderEnd:
    """Locate the first empty line in the accumulated header text.

    Callers that already searched a prefix pass the start of its last,
    unterminated line as ``start``.
    """
    for offset, line, break_length in _terminated_lines(text, start):
        if not line:
            return HeaderEnd(offset, break_length)
    return HEADER_END_NOT_FOUND


def find_header_value(header_text: str, name: str) -> Optional[str]:
    """Return the value following the first ``name: `` occurrence, if any.

    Matching is case-insensitive and the name may appear anywhere on a
    line. The value runs to the end of that line.
    """
    needle = f"{name.lower()}: "
    for line in header_text.split("\n"):
        position = line.lower().find(needle)
        if position != -1:
            return line[position + len(needle) :].rstrip("\r")
    return None


def parse_content_length(value: str) -> int:
    """Parse the leading digit run of a Content-Length value."""
    stripped = value.lstrip(" \t")
    end = 0
    while end < len(stripped) and stripped[end].isascii() and stripped[end].isdigit():
        end += 1
    try:
        return int(stripped[:end])
    except ValueError as exc:
        raise MalformedLengthValue(f"Invalid Content-Length: {value!r}") from exc


def determine_framing(header_text: str) -> BodyFraming:
    """Classify how the request body is delimited.

    A positive Content-Length wins over Transfer-Encoding. Only the
    ``chunked`` coding is recognised; other codings are logged and ignored.
    """
    content_length_value = find_header_value(header_text, CONTENT_LENGTH)
    transfer_encoding = find_header_value(header_text, TRANSFER_ENCODING)

    is_chunked = False
    if transfer_encoding is not None:
        is_chunked = transfer_encoding.strip().lower() == CHUNKED
        if not is_chunked:
            FRAMING_LOGGER.error(
                "Transfer-Encoding value is not supported",
                extra={
                    "event": "unsupported_transfer_encoding",
                    "transfer_encoding": transfer_encoding,
                },
            )

    if content_length_value is not None:
        content_length = parse_content_length(content_length_value)
        if content_length > 0:
            return KnownLength(content_length)
    if is_chunked:
        return Chunked()

    FRAMING_LOGGER.error(
        "No Content-Length header and not chunked, request body not read",
        extra={"event": "framing_undetermined"},
    )
    return Unknown()
