"""Traversal of the active and free block lists.

Headers are kept in an offset-indexed arena rather than linked objects, and
each list is walked with its own visited set, so a corrupt ``next_offset``
loop ends the chain with a CYCLE_DETECTED anomaly instead of spinning.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .header_parser import parse_header, read_roots
from .layout import END_OF_LIST
from .model import (
    Anomaly,
    AnomalyKind,
    BlockHeader,
    FormatError,
)
from .source import ByteSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListRoots:
    """Roots of the two lists as stored in the root table."""
    active: int = END_OF_LIST
    free: int = END_OF_LIST

    @classmethod
    def from_source(cls, source: ByteSource) -> Union["ListRoots", FormatError]:
        roots = read_roots(source)
        if isinstance(roots, FormatError):
            return roots
        return cls(*roots)


@dataclass
class WalkResult:
    """Everything reachable from the declared roots."""
    headers: Dict[int, BlockHeader] = field(default_factory=dict)  # arena, by offset
    warnings: List[Anomaly] = field(default_factory=list)
    error: Optional[FormatError] = None
    # Offsets in list order, keyed by list name ("active", "free", "root0", ...)
    chains: Dict[str, List[int]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    def ordered_headers(self) -> List[BlockHeader]:
        return [self.headers[k] for k in sorted(self.headers)]


def _plan(root_offsets: Union[ListRoots, Iterable[int]]) -> List[Tuple[str, int, Optional[bool]]]:
    """(list name, root, expected allocated flag) for every list to walk."""
    if isinstance(root_offsets, ListRoots):
        plan = []
        if root_offsets.active != END_OF_LIST:
            plan.append(("active", root_offsets.active, True))
        if root_offsets.free != END_OF_LIST:
            plan.append(("free", root_offsets.free, False))
        return plan
    # Bare offsets are taken literally, even 0; list membership is unknown.
    return [(f"root{i}", root, None) for i, root in enumerate(root_offsets)]


def walk(source: ByteSource, root_offsets: Union[ListRoots, Iterable[int]]) -> WalkResult:
    """Follow every chain from ``root_offsets`` and collect its headers.

    A fatal parse error stops the whole walk; the result then carries the
    error together with the headers reached before it.
    """
    result = WalkResult()

    for name, root, expect_allocated in _plan(root_offsets):
        chain: List[int] = []
        result.chains[name] = chain
        visited = set()
        offset = root
        previous = None

        while True:
            if offset in visited:
                result.warnings.append(Anomaly(
                    AnomalyKind.CYCLE_DETECTED,
                    offset,
                    f"{name} list loops back from 0x{previous:04x} to 0x{offset:04x}",
                ))
                break
            visited.add(offset)

            if offset in result.headers:
                # Parsed already via another list; do not walk its tail twice.
                result.warnings.append(Anomaly(
                    AnomalyKind.SHARED_BLOCK,
                    offset,
                    f"block 0x{offset:04x} is also reachable from the {name} list",
                ))
                chain.append(offset)
                break

            header = parse_header(source, offset)
            if isinstance(header, FormatError):
                logger.debug("walk of %s list stopped: %s", name, header)
                result.error = header
                return result

            result.headers[offset] = header
            result.warnings.extend(header.warnings)
            chain.append(offset)

            if expect_allocated is not None and header.allocated != expect_allocated:
                result.warnings.append(Anomaly(
                    AnomalyKind.LIST_MISMATCH,
                    offset,
                    f"block on the {name} list has allocated={header.allocated}",
                ))

            if header.next_offset == END_OF_LIST:
                # Once offset 0 holds a header, a later block linking to 0
                # points back at it; a block at 0 itself reads as end of list.
                if offset == END_OF_LIST or END_OF_LIST not in visited:
                    break
            previous, offset = offset, header.next_offset

        logger.debug("%s list: %d blocks", name, len(chain))

    return result
