"""Body framing policy types shared by the pipeline and transport layers."""

from dataclasses import dataclass
from typing import Union


class MalformedLengthValue(ValueError):
    """Raised when a Content-Length header value is not an integer."""


@dataclass(frozen=True)
class KnownLength:
    """The body is exactly ``length`` bytes long."""

    length: int


@dataclass(frozen=True)
class Chunked:
    """The body uses chunked transfer coding and is forwarded best effort."""


@dataclass(frozen=True)
class Unknown:
    """No usable framing header was found, so no body is read."""


BodyFraming = Union[KnownLength, Chunked, Unknown]


@dataclass(frozen=True)
class HeaderEnd:
    """Location of the blank line that terminates a header block."""

    offset: int
    length: int

    @property
    def found(self) -> bool:
        """Return True when a terminator was located."""
        return self.offset >= 0

    @property
    def body_offset(self) -> int:
        """Offset of the first body byte following the terminator."""
        return self.offset + self.length


HEADER_END_NOT_FOUND = HeaderEnd(-1, 0)
