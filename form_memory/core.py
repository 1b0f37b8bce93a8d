"""Analysis pipeline for form-letter associative memory files.

Runs the stages in order for one file:

    ByteSource -> walk -> classify -> extract_strings -> infer_order

stopping at the first fatal FormatError and collecting every recoverable
Anomaly on the report. Several files (or several snapshots of the same
file) can be analysed together; each file is independent, so batches are
spread over a process pool.
"""
from __future__ import annotations

import logging
import os
from collections import Counter
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Union

from .block_walker import ListRoots, walk
from .classifier import classify
from .model import (
    Anomaly,
    BlockHeader,
    CandidateString,
    FormatError,
    FormatViolation,
    Reference,
    Region,
)
from .residual_analyzer import OrderGraph, infer_order
from .source import ByteSource
from .string_extractor import DEFAULT_MIN_LENGTH, extract_all
from .xrefs import find_references

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """Complete result of analysing one file."""
    file_path: str
    file_size: int = 0
    roots: Optional[ListRoots] = None

    headers: List[BlockHeader] = field(default_factory=list)
    regions: List[Region] = field(default_factory=list)
    candidates: List[CandidateString] = field(default_factory=list)
    order: Optional[OrderGraph] = None
    references: List[Reference] = field(default_factory=list)

    # Recoverable anomalies, in the order they were found
    anomalies: List[Anomaly] = field(default_factory=list)
    # First fatal format violation; analysis stopped there
    error: Optional[FormatError] = None
    # Problems unrelated to the format (unreadable file, ...)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.errors

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise FormatViolation(self.error)


class FormMemoryAnalyzer:
    """Runs the full pipeline over one associative memory file."""

    def __init__(self, min_length: int = DEFAULT_MIN_LENGTH,
                 progress_callback: Optional[Callable[[str, float, str], None]] = None):
        self.min_length = min_length
        self.progress_callback = progress_callback

    def _report_progress(self, stage: str, progress: float, message: str) -> None:
        if self.progress_callback:
            self.progress_callback(stage, progress, message)

    def analyze_file(self, file_path: str,
                     roots: Union[ListRoots, Sequence[int], None] = None) -> AnalysisReport:
        """Load ``file_path`` and analyse it."""
        report = AnalysisReport(file_path=file_path)
        if not os.path.exists(file_path):
            report.errors.append(f"File not found: {file_path}")
            return report
        try:
            source = ByteSource.from_path(file_path)
        except OSError as e:
            report.errors.append(f"Error reading file: {e}")
            return report
        return self.analyze_source(source, roots, report)

    def analyze_source(self, source: ByteSource,
                       roots: Union[ListRoots, Sequence[int], None] = None,
                       report: Optional[AnalysisReport] = None) -> AnalysisReport:
        """Analyse an already loaded byte source.

        Without explicit ``roots`` the list roots are read from the file's
        root table.
        """
        report = report or AnalysisReport(file_path=source.name)
        report.file_size = len(source)

        from_table = roots is None
        if from_table:
            roots = ListRoots.from_source(source)
            if isinstance(roots, FormatError):
                report.error = roots
                return report
        if isinstance(roots, ListRoots):
            report.roots = roots

        self._report_progress("walk", 0.0, "Walking block lists...")
        walked = walk(source, roots)
        report.headers = walked.ordered_headers()
        report.anomalies.extend(walked.warnings)
        if walked.error is not None:
            report.error = walked.error
            return report

        self._report_progress("classify", 0.3, f"Classifying {len(report.headers)} blocks...")
        regions = classify(source, report.headers, root_table=from_table)
        if isinstance(regions, FormatError):
            report.error = regions
            return report
        report.regions = regions

        self._report_progress("strings", 0.6, "Extracting strings...")
        report.candidates = list(extract_all(source, report.regions, self.min_length))
        report.references = find_references(source, report.candidates)

        self._report_progress("order", 0.8, "Inferring write order...")
        report.order = infer_order(report.candidates)
        report.anomalies.extend(report.order.warnings)

        self._report_progress("done", 1.0, "Analysis complete")
        logger.info("%s: %d blocks, %d regions, %d strings, %d order edges, %d warnings",
                    report.file_path, len(report.headers), len(report.regions),
                    len(report.candidates), len(report.order), len(report.anomalies))
        return report


def _analyze_worker(args) -> AnalysisReport:
    """Analyse one file in a worker process.

    Must be module level so ProcessPoolExecutor can pickle it.
    """
    file_path, min_length = args
    return FormMemoryAnalyzer(min_length=min_length).analyze_file(file_path)


def analyze_many(paths: Sequence[str], min_length: int = DEFAULT_MIN_LENGTH,
                 max_workers: Optional[int] = None) -> Dict[str, AnalysisReport]:
    """Analyse independent files in parallel, one file per task."""
    reports: Dict[str, AnalysisReport] = {}
    if not paths:
        return reports
    if max_workers == 1 or len(paths) == 1:
        analyzer = FormMemoryAnalyzer(min_length=min_length)
        return {p: analyzer.analyze_file(p) for p in paths}

    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(_analyze_worker, (p, min_length)): p for p in paths}
        for future in as_completed(futures):
            path = futures[future]
            try:
                reports[path] = future.result()
            except Exception as e:
                report = AnalysisReport(file_path=path)
                report.errors.append(f"Worker error: {e}")
                reports[path] = report
    return reports


def infer_order_across(reports: Sequence[AnalysisReport]) -> OrderGraph:
    """Write-order DAG over the candidates of several snapshots of one file.

    Blocks are matched by header offset. Candidates are told apart by source
    name; snapshots whose names collide get their position appended
    (``form.m#1``) so they are never merged into one.
    """
    names = Counter(report.file_path for report in reports)
    candidates: List[CandidateString] = []
    for index, report in enumerate(reports):
        if names[report.file_path] > 1:
            candidates.extend(replace(c, source_name=f"{c.source_name}#{index}")
                              for c in report.candidates)
        else:
            candidates.extend(report.candidates)
    return infer_order(candidates)
