#!/usr/bin/env python3
"""
Form Memory Analyzer - Command Line Entry Point

Decodes form.m associative memory files and emits JSON lines for review.
"""

import sys
import logging
import argparse
from pathlib import Path

# Add form_memory to path
sys.path.insert(0, str(Path(__file__).parent))

from form_memory import FormMemoryAnalyzer, infer_order_across
from form_memory.config import resolve_min_length
from form_memory import export

EXIT_OK = 0
EXIT_FORMAT_ERROR = 1


def _records(command, report, order=None):
    """JSON-ready records for one report and command."""
    if command in ('regions', 'all'):
        yield from (export.region_record(r, report.file_path) for r in report.regions)
    if command in ('strings', 'all'):
        yield from (export.candidate_record(c) for c in report.candidates)
    if command in ('xrefs', 'all'):
        yield from (export.reference_record(r) for r in report.references)
    if command in ('order', 'all') and order is not None:
        yield from (export.relation_record(r) for r in order.relations)


def _emit(records, output):
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            count = export.write_jsonl(records, f)
        print(f"[+] {count} records saved to: {output}")
    else:
        export.write_jsonl(records, sys.stdout)


def _print_summary(report):
    kinds = {}
    for region in report.regions:
        kinds[region.kind.value] = kinds.get(region.kind.value, 0) + region.length
    print(f"\n{report.file_path}")
    print("=" * 60)
    print(f"File size: {report.file_size:,} bytes")
    if report.roots is not None:
        print(f"Roots: active=0x{report.roots.active:04x} free=0x{report.roots.free:04x}")
    print(f"Blocks: {len(report.headers)}")
    for kind, size in sorted(kinds.items()):
        print(f"  {kind:<18} {size:>8,} bytes")
    print(f"Strings: {len(report.candidates)}")
    print(f"References: {len(report.references)}")
    if report.order is not None:
        print(f"Order edges: {len(report.order)}")
    print(f"Warnings: {len(report.anomalies)}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Form Memory Analyzer - decode form-letter associative memory files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Classify every byte of the file
  %(prog)s regions distr/form.m

  # Recover strings, including slack residue, as JSON lines
  %(prog)s strings distr/form.m --min-length 5 -o strings.jsonl

  # Write-order edges across several snapshots of the same file
  %(prog)s order form.m.1987 form.m.1988

  # Compact overview
  %(prog)s summary distr/form.m
        """
    )

    parser.add_argument(
        'command',
        choices=['regions', 'strings', 'order', 'xrefs', 'all', 'summary', 'test'],
        help='Command to execute'
    )

    parser.add_argument(
        'files',
        nargs='*',
        help='Path(s) to associative memory file(s)'
    )

    parser.add_argument(
        '--min-length',
        type=int,
        help='Minimum length of a recovered string (default: $FORM_MEMORY_MIN_LENGTH or 3)'
    )

    parser.add_argument(
        '--output',
        '-o',
        help='Output file for JSON lines (default: console)'
    )

    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Log every decoding step'
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.command == 'test':
        print("Running test suite...")
        import pytest
        return pytest.main(['tests/', '-v'])

    if not args.files:
        parser.error(f"{args.command} command requires at least one file")

    try:
        min_length = resolve_min_length(args.min_length)
    except ValueError as e:
        parser.error(str(e))

    analyzer = FormMemoryAnalyzer(min_length=min_length)
    reports = [analyzer.analyze_file(path) for path in args.files]

    status = EXIT_OK
    failures = []
    for report in reports:
        for message in report.errors:
            print(f"[!] {message}", file=sys.stderr)
        if report.error is not None:
            print(f"[!] {report.file_path}: {report.error}", file=sys.stderr)
            failures.append(export.error_record(report.error, report.file_path))
        for anomaly in report.anomalies:
            print(f"[?] {report.file_path}: {anomaly}", file=sys.stderr)
        if not report.ok:
            status = EXIT_FORMAT_ERROR
    if status != EXIT_OK:
        if args.command != 'summary':
            _emit(failures, args.output)
        return status

    if args.command == 'summary':
        for report in reports:
            _print_summary(report)
        return EXIT_OK

    # Several files are taken as snapshots of one store when ordering writes.
    if len(reports) > 1 and args.command in ('order', 'all'):
        combined = infer_order_across(reports)
        for anomaly in combined.warnings:
            print(f"[?] {anomaly}", file=sys.stderr)
        records = [rec for report in reports for rec in _records(args.command, report)]
        records.extend(export.relation_record(r) for r in combined.relations)
        order_warnings = combined.warnings
    else:
        records = [rec for report in reports for rec in _records(args.command, report, report.order)]
        order_warnings = []

    if args.command == 'all':
        for report in reports:
            records.extend(export.anomaly_record(a, report.file_path) for a in report.anomalies)
        records.extend(export.anomaly_record(a) for a in order_warnings)

    _emit(records, args.output)
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
