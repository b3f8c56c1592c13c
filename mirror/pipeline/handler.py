"""Mirror a single HTTP request back to the client that sent it.

The response is a fixed ``HTTP/1.0 200 OK`` text/plain head followed by the
request exactly as it was received: the header block byte for byte and as
much of the body as the request framing allows.

Chunked request bodies are not decoded. Only bytes that are already readable
once the headers are mirrored get forwarded, so a chunked body that is still
in flight is truncated.
"""

import logging
import socket
from typing import BinaryIO, Optional

from mirror.domain.connection_id import ConnectionLoggerAdapter
from mirror.domain.framing_types import (
    BodyFraming,
    Chunked,
    HeaderEnd,
    KnownLength,
)
from mirror.domain.response_builders import mirror_preamble
from mirror.pipeline.framing import HEADER_CHARSET, determine_framing
from mirror.pipeline.io import (
    close_quietly,
    encode_head,
    forward_available,
    forward_known_length,
    input_available,
    read_header_block,
)

MIRROR_LOGGER = ConnectionLoggerAdapter(logging.getLogger("http_mirror.mirror"), {})

MIRROR_PREAMBLE = encode_head(mirror_preamble())


class MirrorHandler:
    """Owns one client connection for the lifetime of a single exchange."""

    def __init__(self, connection: socket.socket) -> None:
        self._connection = connection
        self._reader: Optional[BinaryIO] = None
        self._writer: Optional[BinaryIO] = None

    def run(self) -> None:
        """Mirror the request and close the connection on every exit path."""
        MIRROR_LOGGER.debug("Mirror started", extra={"event": "mirror_started"})
        try:
            self._reader = self._connection.makefile("rb", buffering=0)
            self._writer = self._connection.makefile("wb")
            self._mirror(self._reader, self._writer)
        except (OSError, ValueError) as error:
            MIRROR_LOGGER.error(
                "Mirroring request failed",
                extra={
                    "event": "mirror_failed",
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
            )
        except Exception as error:  # pylint: disable=broad-except
            MIRROR_LOGGER.error(
                "Unexpected error while mirroring request",
                extra={"event": "mirror_failed", "error_type": type(error).__name__},
                exc_info=True,
            )
        finally:
            self._close()
        MIRROR_LOGGER.debug("Mirror finished", extra={"event": "mirror_finished"})

    def _mirror(self, reader: BinaryIO, writer: BinaryIO) -> None:
        writer.write(MIRROR_PREAMBLE)
        writer.flush()

        header_text, header_end = read_header_block(reader)
        writer.write(header_text.encode(HEADER_CHARSET))
        MIRROR_LOGGER.debug(
            "Headers mirrored",
            extra={
                "event": "headers_mirrored",
                "bytes_in": len(header_text),
                "header_complete": header_end.found,
            },
        )

        headers_only = (
            header_text[: header_end.offset] if header_end.found else header_text
        )
        framing = determine_framing(headers_only)
        MIRROR_LOGGER.debug(
            "Framing determined",
            extra={"event": "framing_determined", "framing": type(framing).__name__},
        )

        body_bytes = self._stream_body(framing, header_text, header_end)
        writer.flush()
        MIRROR_LOGGER.debug(
            "Body mirrored",
            extra={
                "event": "body_mirrored",
                "framing": type(framing).__name__,
                "bytes_out": body_bytes,
            },
        )

    def _stream_body(
        self, framing: BodyFraming, header_text: str, header_end: HeaderEnd
    ) -> int:
        """Forward the body per the framing policy and return its byte count."""
        already_read = 0
        if header_end.found:
            already_read = len(header_text) - header_end.body_offset
        if isinstance(framing, KnownLength):
            return forward_known_length(
                self._reader, self._writer, framing.length, already_read
            )
        if isinstance(framing, Chunked):
            return already_read + forward_available(
                self._reader,
                self._writer,
                lambda: input_available(self._connection),
            )
        return already_read

    def _close(self) -> None:
        close_quietly(self._writer, "output")
        close_quietly(self._reader, "input")
        close_quietly(self._connection, "connection")


def mirror_connection(connection: socket.socket) -> None:
    """Run a fresh handler over ``connection``."""
    MirrorHandler(connection).run()
