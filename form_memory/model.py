"""Records shared by every stage of the form memory analysis.

All records are frozen: a run derives them once from an immutable
ByteSource and a re-analysis builds a fresh, independent set.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .layout import HEADER_SIZE


class ErrorKind(Enum):
    """Format violations that make further output untrustworthy."""
    OUT_OF_BOUNDS = "out_of_bounds"
    INVALID_HEADER = "invalid_header"
    OVERLAP_DETECTED = "overlap_detected"


class AnomalyKind(Enum):
    """Isolated anomalies; the rest of the file is still analysable."""
    CYCLE_DETECTED = "cycle_detected"
    CONFLICTING_OVERLAP = "conflicting_overlap"
    PAYLOAD_TRUNCATED = "payload_truncated"  # capacity runs past end of file
    LIST_MISMATCH = "list_mismatch"  # allocated flag disagrees with its list
    SHARED_BLOCK = "shared_block"  # one header reached from both lists


class RegionKind(Enum):
    ALLOCATED_STRING = "allocated_string"
    FREED_BLOCK = "freed_block"
    SLACK = "slack"
    HEADER = "header"
    ROOT_TABLE = "root_table"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class FormatError:
    """A fatal format violation at a precise byte offset."""
    kind: ErrorKind
    offset: int
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value} at 0x{self.offset:04x}: {self.message}"


@dataclass(frozen=True)
class Anomaly:
    """A recoverable anomaly, collected rather than raised."""
    kind: AnomalyKind
    offset: int
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value} at 0x{self.offset:04x}: {self.message}"


class FormatViolation(Exception):
    """Raised by callers that prefer exceptions over FormatError values."""

    def __init__(self, error: FormatError):
        super().__init__(str(error))
        self.error = error


@dataclass(frozen=True)
class BlockHeader:
    """One decoded block header."""
    offset: int  # position of the header record
    capacity: int  # allocated payload length
    used_length: int  # live content length, <= capacity
    allocated: bool
    next_offset: int  # END_OF_LIST terminates the chain
    raw: bytes = field(repr=False)
    warnings: Tuple[Anomaly, ...] = ()

    @property
    def data_offset(self) -> int:
        """First payload byte; the payload follows the header directly."""
        return self.offset + HEADER_SIZE

    @property
    def used_end(self) -> int:
        return self.data_offset + self.used_length

    @property
    def capacity_end(self) -> int:
        return self.data_offset + self.capacity

    @property
    def slack_length(self) -> int:
        return self.capacity - self.used_length


@dataclass(frozen=True)
class Region:
    """A half-open byte range ``[start, end)`` with one classification."""
    start: int
    end: int
    kind: RegionKind
    block_offset: Optional[int] = None  # header this region derives from

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Region") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class CandidateString:
    """A run of text-plausible bytes found inside a region."""
    start: int
    end: int
    text: str
    region: Region  # referenced, not owned
    source_name: str = ""
    after_nul: bool = False  # the byte before ``start`` is a NUL terminator

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def ident(self) -> str:
        return f"{self.source_name}@0x{self.start:04x}"

    @property
    def block_offset(self) -> Optional[int]:
        return self.region.block_offset

    def intersects(self, other: "CandidateString") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class OverlapRelation:
    """``earlier`` was written before ``later`` overwrote or truncated it."""
    earlier: CandidateString
    later: CandidateString
    reason: str = ""


@dataclass(frozen=True)
class Reference:
    """A 16-bit word whose value is the start offset of a recovered string."""
    at: int
    target: CandidateString
