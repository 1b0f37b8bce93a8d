"""Form Memory Analyzer package.

Decodes the associative memory file (form.m) written by the legacy
form-letter generator:
- Block header parsing and validation
- Active/free list traversal with cycle detection
- Partitioning of every byte into allocated, freed, slack, header or
  unclassified regions
- Recovery of residual strings from slack space
- Partial write-order inference from overlapping fragments
- Pointer cross-references to recovered strings
"""
from .source import ByteSource
from .model import (
    Anomaly,
    AnomalyKind,
    BlockHeader,
    CandidateString,
    ErrorKind,
    FormatError,
    FormatViolation,
    OverlapRelation,
    Reference,
    Region,
    RegionKind,
)
from .header_parser import parse_header, read_roots
from .block_walker import ListRoots, WalkResult, walk
from .classifier import classify
from .string_extractor import DEFAULT_MIN_LENGTH, extract_strings
from .residual_analyzer import OrderGraph, infer_order
from .xrefs import find_references
from .core import (
    AnalysisReport,
    FormMemoryAnalyzer,
    analyze_many,
    infer_order_across,
)

__all__ = [
    # Input
    "ByteSource",
    # Records
    "Anomaly",
    "AnomalyKind",
    "BlockHeader",
    "CandidateString",
    "ErrorKind",
    "FormatError",
    "FormatViolation",
    "OverlapRelation",
    "Reference",
    "Region",
    "RegionKind",
    # Stages
    "parse_header",
    "read_roots",
    "ListRoots",
    "WalkResult",
    "walk",
    "classify",
    "DEFAULT_MIN_LENGTH",
    "extract_strings",
    "OrderGraph",
    "infer_order",
    "find_references",
    # Pipeline
    "AnalysisReport",
    "FormMemoryAnalyzer",
    "analyze_many",
    "infer_order_across",
]

__version__ = "0.3.0"
