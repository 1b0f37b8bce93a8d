"""End-to-end tests for the analysis pipeline."""
import os
import sys
import unittest
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from form_memory import (
    AnomalyKind,
    ByteSource,
    ErrorKind,
    FormatViolation,
    FormMemoryAnalyzer,
    ListRoots,
    RegionKind,
    analyze_many,
    infer_order_across,
)
from form_memory.header_parser import encode_header

from image_builder import HEADER_SIZE, block, build_image, roots


def _form_image():
    """Two live blocks, one with slack residue, and one freed block."""
    return build_image({
        0x00: roots(active=0x10, free=0x60),
        0x10: block(40, b".ds LT Dear Sir\x00towhom-12 Mrs. Jones\x00",
                    used_length=15, next_offset=0x40),
        0x40: block(16, b"Yours truly,"),
        0x60: block(12, b"old letter", allocated=False),
    }, size=0x80)


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_bytes(data)
    return str(path)


def test_full_analysis(tmp_path):
    path = _write(tmp_path, "form.m", _form_image())
    report = FormMemoryAnalyzer().analyze_file(path)

    assert report.ok
    assert report.file_size == 0x80
    assert report.roots == ListRoots(active=0x10, free=0x60)
    assert [h.offset for h in report.headers] == [0x10, 0x40, 0x60]
    assert report.anomalies == []

    # Partition of the whole file
    assert report.regions[0].start == 0
    assert report.regions[-1].end == 0x80
    assert sum(r.length for r in report.regions) == 0x80

    texts = {c.text: c.region.kind for c in report.candidates}
    assert texts[".ds LT Dear Sir"] == RegionKind.ALLOCATED_STRING
    assert texts["towhom-12 Mrs. Jones"] == RegionKind.SLACK
    assert texts["Yours truly,"] == RegionKind.ALLOCATED_STRING
    assert texts["old letter"] == RegionKind.FREED_BLOCK

    edges = [(r.earlier.text, r.later.text) for r in report.order.relations]
    assert edges == [("towhom-12 Mrs. Jones", ".ds LT Dear Sir")]


def test_min_length_is_applied(tmp_path):
    path = _write(tmp_path, "form.m", _form_image())
    report = FormMemoryAnalyzer(min_length=13).analyze_file(path)
    assert [c.text for c in report.candidates] == [".ds LT Dear Sir", "towhom-12 Mrs. Jones"]


def test_invalid_header_emits_no_regions():
    """used_length=12 > capacity=8 at offset 0 stops the run."""
    src = ByteSource(encode_header(0, 8, 12) + b"Dear Sir, hi")
    report = FormMemoryAnalyzer().analyze_source(src, roots=[0])
    assert not report.ok
    assert report.error.kind == ErrorKind.INVALID_HEADER
    assert report.error.offset == 0
    assert report.regions == []
    assert report.candidates == []
    with pytest.raises(FormatViolation) as exc:
        report.raise_for_error()
    assert exc.value.error is report.error


def test_overlap_stops_the_run():
    image = build_image({
        0x00: roots(active=0x10),
        0x10: block(16, b"first", next_offset=0x1c),
        0x1c: block(4, b"2nd!"),
    })
    report = FormMemoryAnalyzer().analyze_source(ByteSource(image))
    assert report.error.kind == ErrorKind.OVERLAP_DETECTED
    assert report.regions == []
    assert len(report.headers) == 2


def test_block_over_root_table_stops_the_run():
    image = build_image({
        0x00: roots(active=0x02),
        0x02: block(4, b"abcd"),
    })
    report = FormMemoryAnalyzer().analyze_source(ByteSource(image))
    assert report.error.kind == ErrorKind.OVERLAP_DETECTED
    assert report.error.offset == 0x02

    # Explicit roots leave the first bytes to whatever block claims them.
    assert FormMemoryAnalyzer().analyze_source(ByteSource(image), roots=[0x02]).ok


def test_cycle_is_a_warning_not_an_error():
    image = build_image({
        0x00: roots(active=0x10),
        0x10: block(8, b"abcdef", next_offset=0x20),
        0x20: block(8, b"ghijkl", next_offset=0x10),
    })
    report = FormMemoryAnalyzer().analyze_source(ByteSource(image))
    assert report.ok
    assert [a.kind for a in report.anomalies] == [AnomalyKind.CYCLE_DETECTED]
    assert [r.kind for r in report.regions[:2]] == [RegionKind.ROOT_TABLE, RegionKind.UNCLASSIFIED]
    assert len(report.regions) == 8


def test_root_table_missing():
    report = FormMemoryAnalyzer().analyze_source(ByteSource(b"\x01"))
    assert report.error.kind == ErrorKind.OUT_OF_BOUNDS


def test_missing_file(tmp_path):
    report = FormMemoryAnalyzer().analyze_file(str(tmp_path / "nope.m"))
    assert not report.ok
    assert report.error is None
    assert "File not found" in report.errors[0]


def test_reanalysis_is_independent(tmp_path):
    path = _write(tmp_path, "form.m", _form_image())
    analyzer = FormMemoryAnalyzer()
    first = analyzer.analyze_file(path)
    second = analyzer.analyze_file(path)
    assert first is not second
    assert first.regions == second.regions
    assert first.candidates == second.candidates


def test_analyze_many(tmp_path):
    good = _write(tmp_path, "good.m", _form_image())
    bad = _write(tmp_path, "bad.m", roots(active=0x04) + encode_header(0, 2, 9) + b"xx")
    reports = analyze_many([good, bad], max_workers=2)
    assert set(reports) == {good, bad}
    assert reports[good].ok
    assert reports[bad].error.kind == ErrorKind.INVALID_HEADER


def test_analyze_many_serial(tmp_path):
    good = _write(tmp_path, "good.m", _form_image())
    assert analyze_many([good], max_workers=1)[good].ok
    assert analyze_many([]) == {}


def _snapshots():
    first = build_image({
        0x00: roots(active=0x04),
        0x04: block(24, b"Dear Sir or Madam"),
    })
    second = build_image({
        0x00: roots(active=0x04),
        0x04: block(24, b"Dear Sir\x00or Madam", used_length=8),
    })
    return first, second


def _edge_set(graph):
    return {(r.earlier.text, r.later.text, r.reason) for r in graph.relations}


def test_order_across_snapshots(tmp_path):
    first, second = _snapshots()
    analyzer = FormMemoryAnalyzer()
    old_path = _write(tmp_path, "form.m.1", first)
    new_path = _write(tmp_path, "form.m.2", second)
    reports = [analyzer.analyze_file(old_path), analyzer.analyze_file(new_path)]
    graph = infer_order_across(reports)
    by_text = {(c.source_name, c.text): c for c in graph.nodes}
    old = by_text[(old_path, "Dear Sir or Madam")]
    new = by_text[(new_path, "Dear Sir")]
    residue = by_text[(new_path, "or Madam")]
    assert graph.precedes(old, new)
    assert graph.precedes(old, residue)
    assert graph.precedes(residue, new)


def test_snapshots_with_the_same_file_name(tmp_path):
    """Copies of form.m kept in different directories stay distinct."""
    first, second = _snapshots()
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    analyzer = FormMemoryAnalyzer()
    reports = [
        analyzer.analyze_file(_write(tmp_path / "a", "form.m", first)),
        analyzer.analyze_file(_write(tmp_path / "b", "form.m", second)),
    ]
    assert reports[0].candidates[0].source_name != reports[1].candidates[0].source_name

    assert _edge_set(infer_order_across(reports)) == {
        ("Dear Sir or Madam", "Dear Sir", "truncated_prefix"),
        ("Dear Sir or Madam", "or Madam", "truncated_suffix"),
        ("or Madam", "Dear Sir", "succession"),
    }


def test_in_memory_snapshots_with_one_name():
    """Sources that share a name are told apart by their position."""
    first, second = _snapshots()
    analyzer = FormMemoryAnalyzer()
    reports = [
        analyzer.analyze_source(ByteSource(first, name="form.m")),
        analyzer.analyze_source(ByteSource(second, name="form.m")),
    ]
    graph = infer_order_across(reports)
    assert {c.source_name for c in graph.nodes} == {"form.m#0", "form.m#1"}
    assert ("Dear Sir or Madam", "Dear Sir", "truncated_prefix") in _edge_set(graph)


class TestProgress(unittest.TestCase):
    def test_progress_callback_stages(self):
        callback = MagicMock()
        analyzer = FormMemoryAnalyzer(progress_callback=callback)
        report = analyzer.analyze_source(ByteSource(_form_image()))
        self.assertTrue(report.ok)
        stages = [c.args[0] for c in callback.call_args_list]
        self.assertEqual(stages, ["walk", "classify", "strings", "order", "done"])
        self.assertEqual(callback.call_args_list[-1].args[1], 1.0)


if __name__ == "__main__":
    unittest.main()
