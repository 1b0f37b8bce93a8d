"""Partitioning of the file's address space into labelled regions.

Every byte of the file ends up in exactly one Region. Claimed regions (the
root table and everything derived from a header) must never overlap; an
overlap means corrupt headers or a wrong layout assumption and is reported
as OVERLAP_DETECTED, never resolved.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Union

from .layout import HEADER_SIZE, ROOT_TABLE_OFFSET, ROOT_TABLE_SIZE
from .model import (
    BlockHeader,
    ErrorKind,
    FormatError,
    Region,
    RegionKind,
)
from .source import ByteSource

logger = logging.getLogger(__name__)


def _header_regions(header: BlockHeader, file_length: int) -> List[Region]:
    """Regions derived from one header, clipped to the end of the file."""
    spans = [
        (header.offset, header.offset + HEADER_SIZE, RegionKind.HEADER),
        (
            header.data_offset,
            header.used_end,
            RegionKind.ALLOCATED_STRING if header.allocated else RegionKind.FREED_BLOCK,
        ),
    ]
    if header.capacity > header.used_length:
        spans.append((header.used_end, header.capacity_end, RegionKind.SLACK))

    regions = []
    for start, end, kind in spans:
        end = min(end, file_length)
        if start < end:
            regions.append(Region(start, end, kind, block_offset=header.offset))
    return regions


def _describe(region: Region) -> str:
    if region.block_offset is None:
        return region.kind.value
    return f"{region.kind.value} of block 0x{region.block_offset:04x}"


def classify(source: ByteSource, headers: Iterable[BlockHeader],
             root_table: bool = False) -> Union[List[Region], FormatError]:
    """Return regions ordered by start, covering ``[0, len(source))``.

    With ``root_table`` the list roots were read from the file, and their
    bytes are claimed as a ROOT_TABLE region that no block may overlap.
    """
    file_length = len(source)
    claimed: List[Region] = []
    if root_table:
        end = min(ROOT_TABLE_OFFSET + ROOT_TABLE_SIZE, file_length)
        if ROOT_TABLE_OFFSET < end:
            claimed.append(Region(ROOT_TABLE_OFFSET, end, RegionKind.ROOT_TABLE))
    for header in headers:
        claimed.extend(_header_regions(header, file_length))
    claimed.sort(key=lambda r: (r.start, r.end))

    regions: List[Region] = []
    cursor = 0
    previous = None
    for region in claimed:
        if region.start < cursor:
            return FormatError(
                ErrorKind.OVERLAP_DETECTED,
                region.start,
                f"{_describe(region)} overlaps {_describe(previous)}",
            )
        if region.start > cursor:
            regions.append(Region(cursor, region.start, RegionKind.UNCLASSIFIED))
        regions.append(region)
        cursor = region.end
        previous = region

    if cursor < file_length:
        regions.append(Region(cursor, file_length, RegionKind.UNCLASSIFIED))

    logger.debug("classified %d bytes into %d regions", file_length, len(regions))
    return regions


def regions_of_kind(regions: Iterable[Region], *kinds: RegionKind) -> List[Region]:
    return [r for r in regions if r.kind in kinds]
