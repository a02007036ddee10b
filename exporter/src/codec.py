"""
Property value codec for ECHONET Lite property data (EDT) buffers.

Decodes the raw bytes a device returns for one property code (EPC) into an
integer according to a declared :class:`PropertyEncoding`.  Supported
encodings are 1, 2 and 4 byte big-endian integers, signed (two's
complement) or unsigned, plus a homogeneous array variant whose buffer is
prefixed with a ``(min_index, max_index)`` pair.

Length mismatches are data errors, not transport errors: :func:`decode`
returns the sentinel :data:`MALFORMED` instead of raising so a single bad
buffer can never abort a poll cycle.

No scaling happens here -- see :mod:`exporter.src.scaling`.

CHANGELOG:
- 2026-10-14: Decode not-applicable array slots to None
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

MALFORMED: int = 0
"""Value returned by :func:`decode` when the buffer length is wrong."""

ARRAY_HEADER_LEN: int = 2
"""Array buffers start with one ``min_index`` byte and one ``max_index`` byte."""


# ---------------------------------------------------------------------------
# Encoding definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PropertyEncoding:
    """How to interpret a raw property buffer.

    Attributes:
        name: Short type name (e.g. ``"U16"``), used in log messages.
        width: Element width in bytes (1, 2 or 4).
        signed: Whether the element is two's complement signed.
        array: When True the buffer is a ``(min_index, max_index)`` header
            followed by ``width``-byte elements.
    """

    name: str
    width: int
    signed: bool
    array: bool = False

    def __post_init__(self) -> None:  # noqa: D105
        if self.width not in (1, 2, 4):
            msg = f"Encoding '{self.name}': unsupported width {self.width}"
            raise ValueError(msg)

    def as_array(self) -> PropertyEncoding:
        """Return the array variant of this encoding."""
        return replace(self, name=f"{self.name}[]", array=True)

    @property
    def not_applicable(self) -> frozenset[int]:
        """Raw element values that mean "no reading" rather than a number.

        ECHONET Lite reserves the top of the unsigned range for overflow
        and underflow; signed types reserve the two extremes for overflow
        and underflow and ``max - 1`` for "no data".
        """
        bits = self.width * 8
        if self.signed:
            top = (1 << (bits - 1)) - 1
            return frozenset({top, top - 1, -(1 << (bits - 1))})
        top = (1 << bits) - 1
        return frozenset({top, top - 1})


UINT8 = PropertyEncoding("U8", 1, signed=False)
INT8 = PropertyEncoding("S8", 1, signed=True)
UINT16 = PropertyEncoding("U16", 2, signed=False)
INT16 = PropertyEncoding("S16", 2, signed=True)
UINT32 = PropertyEncoding("U32", 4, signed=False)
INT32 = PropertyEncoding("S32", 4, signed=True)


# ---------------------------------------------------------------------------
# Scalar decoding
# ---------------------------------------------------------------------------


def is_well_formed(buffer: bytes, encoding: PropertyEncoding) -> bool:
    """Return True when *buffer* has exactly the scalar width of *encoding*."""
    return len(buffer) == encoding.width


def _to_int(chunk: bytes, signed: bool) -> int:
    return int.from_bytes(chunk, byteorder="big", signed=signed)


def decode(buffer: bytes, encoding: PropertyEncoding) -> int:
    """Decode a scalar property buffer.

    Args:
        buffer: Raw EDT bytes for one property.
        encoding: Declared scalar encoding of the property.

    Returns:
        The decoded integer, or :data:`MALFORMED` when the buffer length
        does not match ``encoding.width``.
    """
    if not is_well_formed(buffer, encoding):
        logger.warning(
            "Malformed %s buffer: expected %d bytes, got %d (%s)",
            encoding.name,
            encoding.width,
            len(buffer),
            buffer.hex(),
        )
        return MALFORMED
    return _to_int(buffer, encoding.signed)


# ---------------------------------------------------------------------------
# Array decoding
# ---------------------------------------------------------------------------


def decode_array(buffer: bytes, encoding: PropertyEncoding) -> list[int | None]:
    """Decode a homogeneous array property buffer.

    The first two bytes carry ``min_index`` and ``max_index``; the element
    count is ``max_index - min_index + 1``.  Each following ``width``-byte
    chunk is one element, in input order.  Elements equal to one of the
    encoding's :attr:`~PropertyEncoding.not_applicable` values decode to
    ``None`` so the caller can skip them.

    Returns an empty list when the header is missing, the index range is
    inverted, or the element bytes are not a multiple of the width.  When
    fewer elements are present than announced, only the present ones are
    returned; surplus trailing elements are ignored.
    """
    if len(buffer) < ARRAY_HEADER_LEN:
        logger.warning(
            "Array %s buffer too short for header: %s", encoding.name, buffer.hex()
        )
        return []

    min_index, max_index = buffer[0], buffer[1]
    if max_index < min_index:
        logger.warning(
            "Array %s buffer has inverted index range (%d, %d)",
            encoding.name,
            min_index,
            max_index,
        )
        return []

    expected = max_index - min_index + 1
    body = buffer[ARRAY_HEADER_LEN:]
    width = encoding.width

    if len(body) % width != 0:
        logger.warning(
            "Array %s body of %d bytes is not a multiple of element width %d",
            encoding.name,
            len(body),
            width,
        )
        return []

    present = len(body) // width
    if present != expected:
        logger.warning(
            "Array %s announced %d elements but carries %d, truncating",
            encoding.name,
            expected,
            present,
        )

    na = encoding.not_applicable
    values: list[int | None] = []
    for i in range(min(present, expected)):
        value = _to_int(body[i * width : (i + 1) * width], encoding.signed)
        values.append(None if value in na else value)
    return values
