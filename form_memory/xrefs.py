"""Pointer cross-references to recovered strings.

Any 16-bit little-endian word in the file whose value equals the start
offset of a recovered string is reported, at every alignment. This is raw
evidence for studying how keys point at values; it makes no claim about
which words are real pointers.
"""
from __future__ import annotations

import struct
from typing import Iterable, List

from .layout import WORD_MAX
from .model import CandidateString, Reference
from .source import ByteSource


def find_references(source: ByteSource, candidates: Iterable[CandidateString]) -> List[Reference]:
    data = source.data
    refs: List[Reference] = []
    seen_targets = set()
    for target in candidates:
        if target.start > WORD_MAX or target.start in seen_targets:
            continue
        seen_targets.add(target.start)
        needle = struct.pack("<H", target.start)
        at = data.find(needle)
        while at != -1:
            refs.append(Reference(at=at, target=target))
            at = data.find(needle, at + 1)
    refs.sort(key=lambda r: (r.at, r.target.start))
    return refs
