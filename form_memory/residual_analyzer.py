"""Write-order inference for recovered string fragments.

Blocks are always rewritten from the start of their payload, so a write
overwrites the head of whatever the block held before and leaves that
content's tail behind in slack. Two kinds of evidence follow from this:

* succession: in one snapshot of a block, a slack fragment lying above
  another fragment was written before it (the lower one's write covered
  the head of the higher one's former content);
* truncation: across snapshots, a fragment that is a strict prefix or
  suffix of a longer fragment at the same location is that content after
  a later write cut it short.

The result is a DAG. Fragments with no such evidence stay incomparable;
nothing here flattens the graph into a single history.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from .model import (
    Anomaly,
    AnomalyKind,
    CandidateString,
    OverlapRelation,
    RegionKind,
)

logger = logging.getLogger(__name__)

SUCCESSION = "succession"
TRUNCATED_PREFIX = "truncated_prefix"
TRUNCATED_SUFFIX = "truncated_suffix"


class OrderGraph:
    """Partial order of writes over CandidateStrings.

    ``add_edge`` refuses any edge that would close a cycle and records a
    CONFLICTING_OVERLAP anomaly for it instead.
    """

    def __init__(self):
        self.nodes: List[CandidateString] = []
        self.relations: List[OverlapRelation] = []
        self.warnings: List[Anomaly] = []
        self._succ: Dict[CandidateString, Set[CandidateString]] = defaultdict(set)
        self._known: Set[CandidateString] = set()

    def add_node(self, candidate: CandidateString) -> None:
        if candidate not in self._known:
            self._known.add(candidate)
            self.nodes.append(candidate)

    def add_edge(self, earlier: CandidateString, later: CandidateString, reason: str = "") -> bool:
        """Record ``earlier -> later``. Returns False if the edge was dropped."""
        self.add_node(earlier)
        self.add_node(later)
        if later in self._succ[earlier]:
            return True
        if earlier == later or self.precedes(later, earlier):
            self.warnings.append(Anomaly(
                AnomalyKind.CONFLICTING_OVERLAP,
                later.start,
                f"{earlier.ident} -> {later.ident} ({reason or 'unspecified'}) "
                f"contradicts the order already inferred",
            ))
            logger.debug("dropped cyclic edge %s -> %s", earlier.ident, later.ident)
            return False
        self._succ[earlier].add(later)
        self.relations.append(OverlapRelation(earlier, later, reason))
        return True

    def precedes(self, a: CandidateString, b: CandidateString) -> bool:
        """True if a path a -> ... -> b exists."""
        stack = [a]
        seen = {a}
        while stack:
            node = stack.pop()
            for nxt in self._succ.get(node, ()):
                if nxt == b:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    stack.append(nxt)
        return False

    def incomparable(self, a: CandidateString, b: CandidateString) -> bool:
        return a != b and not self.precedes(a, b) and not self.precedes(b, a)

    def __len__(self) -> int:
        return len(self.relations)


def _truncation(longer: CandidateString, shorter: CandidateString) -> Optional[str]:
    """Reason ``shorter`` is ``longer`` cut short, or None."""
    if shorter.length >= longer.length:
        return None
    if shorter.start < longer.start or shorter.end > longer.end:
        return None
    if shorter.start == longer.start and longer.text.startswith(shorter.text):
        return TRUNCATED_PREFIX
    if shorter.end == longer.end and longer.text.endswith(shorter.text):
        return TRUNCATED_SUFFIX
    return None


def _same_write(a: CandidateString, b: CandidateString) -> bool:
    # Runs inside one live or freed region were laid down by a single write.
    return a.region == b.region and a.region.kind in (RegionKind.ALLOCATED_STRING, RegionKind.FREED_BLOCK)


def _starts_a_write(candidate: CandidateString) -> bool:
    """True if ``candidate`` begins at a write boundary.

    That is the used-length boundary or just past a NUL terminator. A run
    split from its neighbour by some other control byte (backspace, form
    feed) may be the same earlier write.
    """
    return candidate.after_nul or candidate.start == candidate.region.start


def _add_truncations(graph: OrderGraph, group: List[CandidateString]) -> None:
    for a in group:
        for b in group:
            if a is b or a.source_name == b.source_name:
                continue
            reason = _truncation(a, b)
            if reason:
                graph.add_edge(a, b, reason)


def _add_successions(graph: OrderGraph, group: List[CandidateString]) -> None:
    by_source: Dict[str, List[CandidateString]] = defaultdict(list)
    for c in group:
        by_source[c.source_name].append(c)

    for fragments in by_source.values():
        fragments.sort(key=lambda c: (c.start, c.end))
        for i, upper in enumerate(fragments):
            if upper.region.kind != RegionKind.SLACK or not _starts_a_write(upper):
                continue
            below = [c for c in fragments[:i] if c.end <= upper.start]
            if not below:
                continue
            lower = max(below, key=lambda c: c.end)
            if _same_write(lower, upper):
                continue
            graph.add_edge(upper, lower, SUCCESSION)


def infer_order(candidates: Iterable[CandidateString]) -> OrderGraph:
    """Build the write-order DAG for ``candidates``.

    Only candidates belonging to the same block (same header offset, in any
    snapshot) are compared. Candidates outside any block are kept as
    isolated nodes.
    """
    graph = OrderGraph()
    groups: Dict[int, List[CandidateString]] = defaultdict(list)
    for c in candidates:
        graph.add_node(c)
        if c.block_offset is not None:
            groups[c.block_offset].append(c)

    for block_offset in sorted(groups):
        group = groups[block_offset]
        _add_truncations(graph, group)
        _add_successions(graph, group)

    logger.debug("write order: %d fragments, %d edges, %d conflicts",
                 len(graph.nodes), len(graph.relations), len(graph.warnings))
    return graph
