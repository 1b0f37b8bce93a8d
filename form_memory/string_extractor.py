"""Printable-run extraction from classified regions.

Purely syntactic: no attempt is made to judge what a run means.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Iterator

from .model import CandidateString, Region, RegionKind
from .source import ByteSource

DEFAULT_MIN_LENGTH = 3

# Printable ASCII plus the whitespace roff sources use.
TEXT_BYTES = rb"\t\n\r -~"

# Regions worth scanning for text by default.
TEXT_REGION_KINDS = (RegionKind.ALLOCATED_STRING, RegionKind.FREED_BLOCK, RegionKind.SLACK)


@lru_cache(maxsize=None)
def _run_pattern(min_length: int) -> re.Pattern:
    return re.compile(b"[" + TEXT_BYTES + b"]{" + str(min_length).encode() + b",}")


def extract_strings(source: ByteSource, region: Region,
                    min_length: int = DEFAULT_MIN_LENGTH) -> Iterator[CandidateString]:
    """Yield one CandidateString per maximal text run of ``min_length`` bytes or more.

    Each call starts a fresh scan, so the same region can be scanned again
    and yields the same candidates.
    """
    if min_length < 1:
        raise ValueError(f"min_length must be positive, got {min_length}")
    data = source.read(region.start, region.length)
    for match in _run_pattern(min_length).finditer(data):
        start = region.start + match.start()
        yield CandidateString(
            start=start,
            end=region.start + match.end(),
            text=match.group().decode("ascii"),
            region=region,
            source_name=source.name,
            after_nul=start > 0 and source.data[start - 1] == 0,
        )


def extract_all(source: ByteSource, regions: Iterable[Region],
                min_length: int = DEFAULT_MIN_LENGTH,
                kinds=TEXT_REGION_KINDS) -> Iterator[CandidateString]:
    """Candidates from every region of the given kinds, in file order."""
    for region in regions:
        if region.kind in kinds:
            yield from extract_strings(source, region, min_length)
