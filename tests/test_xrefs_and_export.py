"""Tests for pointer cross-references and JSON-lines export."""
import io
import json
import struct

from form_memory import (
    ByteSource,
    CandidateString,
    FormMemoryAnalyzer,
    Region,
    RegionKind,
    find_references,
)
from form_memory.header_parser import encode_header
from form_memory import export

from image_builder import HEADER_SIZE, block, build_image, roots


def _image():
    key_block = 0x10
    value_block = 0x30
    value_text = value_block + HEADER_SIZE
    return build_image({
        0x00: roots(active=key_block),
        # key block: a name followed by a pointer to the value text
        key_block: block(12, b"towhom\x00\x00" + struct.pack("<H", value_text), next_offset=value_block),
        value_block: block(10, b"Mr. Smith"),
    }), value_text


def test_references_to_string_offsets():
    image, value_text = _image()
    report = FormMemoryAnalyzer().analyze_source(ByteSource(image, name="form.m"))
    assert report.ok

    targets = {c.start: c for c in report.candidates}
    assert value_text in targets
    refs = [r for r in report.references if r.target.start == value_text]
    pointer_at = 0x10 + HEADER_SIZE + 8
    assert [r.at for r in refs] == [pointer_at]
    assert refs[0].target.text == "Mr. Smith"


def test_references_found_at_any_alignment():
    src = ByteSource(b"\x00\x05\x00abcdef", name="x")
    report = FormMemoryAnalyzer().analyze_source(src, roots=[])
    assert report.candidates == []
    target = CandidateString(5, 8, "cde", Region(3, 9, RegionKind.SLACK, 0))
    refs = find_references(src, [target, target])
    assert [r.at for r in refs] == [1]


def test_records_are_json_serialisable():
    image, _ = _image()
    report = FormMemoryAnalyzer().analyze_source(ByteSource(image, name="form.m"))
    records = (
        [export.region_record(r) for r in report.regions]
        + [export.candidate_record(c) for c in report.candidates]
        + [export.reference_record(r) for r in report.references]
        + [export.relation_record(r) for r in report.order.relations]
        + [export.anomaly_record(a) for a in report.anomalies]
    )
    out = io.StringIO()
    count = export.write_jsonl(records, out)
    lines = out.getvalue().splitlines()
    assert count == len(lines) == len(records)
    decoded = [json.loads(line) for line in lines]
    regions = [d for d in decoded if d["type"] == "region"]
    assert sum(d["length"] for d in regions) == len(image)
    strings = [d for d in decoded if d["type"] == "string"]
    assert {"id", "offset", "length", "text"} <= set(strings[0])


def test_error_record():
    src = ByteSource(encode_header(0, 8, 12) + b"\x00" * 8)
    report = FormMemoryAnalyzer().analyze_source(src, roots=[0])
    record = export.error_record(report.error, "form.m")
    assert record == {
        "type": "error",
        "source": "form.m",
        "kind": "invalid_header",
        "offset": 0,
        "message": report.error.message,
    }
