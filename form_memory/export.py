"""Plain structured records for downstream review tooling.

Every record is a flat dict that ``json.dumps`` accepts; ``write_jsonl``
writes one per line.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Optional, TextIO

from .model import (
    Anomaly,
    CandidateString,
    FormatError,
    OverlapRelation,
    Reference,
    Region,
)


def region_record(region: Region, source: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "region",
        "source": source,
        "offset": region.start,
        "length": region.length,
        "kind": region.kind.value,
        "block": region.block_offset,
    }


def candidate_record(candidate: CandidateString) -> Dict[str, Any]:
    return {
        "type": "string",
        "id": candidate.ident,
        "offset": candidate.start,
        "length": candidate.length,
        "region": candidate.region.kind.value,
        "block": candidate.block_offset,
        "text": candidate.text,
    }


def relation_record(relation: OverlapRelation) -> Dict[str, Any]:
    return {
        "type": "order",
        "earlier": relation.earlier.ident,
        "later": relation.later.ident,
        "reason": relation.reason,
    }


def reference_record(reference: Reference) -> Dict[str, Any]:
    return {
        "type": "reference",
        "offset": reference.at,
        "target": reference.target.ident,
        "target_offset": reference.target.start,
    }


def anomaly_record(anomaly: Anomaly, source: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "warning",
        "source": source,
        "kind": anomaly.kind.value,
        "offset": anomaly.offset,
        "message": anomaly.message,
    }


def error_record(error: FormatError, source: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "error",
        "source": source,
        "kind": error.kind.value,
        "offset": error.offset,
        "message": error.message,
    }


def write_jsonl(records: Iterable[Dict[str, Any]], stream: TextIO) -> int:
    """Write records one JSON object per line; returns the count written."""
    count = 0
    for record in records:
        stream.write(json.dumps(record, ensure_ascii=False))
        stream.write("\n")
        count += 1
    return count
