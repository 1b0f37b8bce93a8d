"""Block header decoding.

``parse_header`` is a pure function of the byte source and an offset. It
returns a BlockHeader, or a FormatError for the two invariant violations
known up front (used_length > capacity, nonzero reserved bits). Anything
else that looks odd is attached to the header as an Anomaly instead.
"""
from __future__ import annotations

import logging
import struct
from typing import List, Tuple, Union

from . import layout
from .model import (
    Anomaly,
    AnomalyKind,
    BlockHeader,
    ErrorKind,
    FormatError,
)
from .source import ByteSource

logger = logging.getLogger(__name__)


def parse_header(source: ByteSource, offset: int) -> Union[BlockHeader, FormatError]:
    """Decode the header record starting at ``offset``."""
    if not source.contains(offset, layout.HEADER_SIZE):
        return FormatError(
            ErrorKind.OUT_OF_BOUNDS,
            offset,
            f"{layout.HEADER_SIZE}-byte header does not fit in {len(source)}-byte file",
        )

    raw = source.read(offset, layout.HEADER_SIZE)
    next_offset, capacity, used_length, flags, reserved = struct.unpack(layout.HEADER_FORMAT, raw)

    if flags & layout.FLAGS_RESERVED_MASK or reserved:
        return FormatError(
            ErrorKind.INVALID_HEADER,
            offset,
            f"reserved bits set (flags=0x{flags:02x}, reserved=0x{reserved:02x})",
        )
    if used_length > capacity:
        return FormatError(
            ErrorKind.INVALID_HEADER,
            offset,
            f"used_length {used_length} exceeds capacity {capacity}",
        )

    warnings: List[Anomaly] = []
    payload_end = offset + layout.HEADER_SIZE + capacity
    if payload_end > len(source):
        warnings.append(Anomaly(
            AnomalyKind.PAYLOAD_TRUNCATED,
            offset,
            f"capacity {capacity} runs {payload_end - len(source)} bytes past end of file",
        ))

    header = BlockHeader(
        offset=offset,
        capacity=capacity,
        used_length=used_length,
        allocated=bool(flags & layout.FLAG_ALLOCATED),
        next_offset=next_offset,
        raw=raw,
        warnings=tuple(warnings),
    )
    logger.debug("header @0x%04x: %s", offset, header)
    return header


def read_roots(source: ByteSource) -> Union[Tuple[int, int], FormatError]:
    """Return the (active, free) list roots from the root table."""
    if not source.contains(layout.ROOT_TABLE_OFFSET, layout.ROOT_TABLE_SIZE):
        return FormatError(
            ErrorKind.OUT_OF_BOUNDS,
            layout.ROOT_TABLE_OFFSET,
            "file too short for the root table",
        )
    active, free = struct.unpack_from(layout.ROOT_TABLE_FORMAT, source.data, layout.ROOT_TABLE_OFFSET)
    return active, free


def encode_header(next_offset: int, capacity: int, used_length: int,
                  allocated: bool = True, flags: int = 0, reserved: int = 0) -> bytes:
    """Build a raw header record (used to write synthetic images)."""
    if allocated:
        flags |= layout.FLAG_ALLOCATED
    return struct.pack(layout.HEADER_FORMAT, next_offset, capacity, used_length, flags, reserved)
