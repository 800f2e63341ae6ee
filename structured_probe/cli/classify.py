"""Offline strategy classification of a saved trace."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from structured_probe.cli.common import load_data_file, positive_int, split_keys
from structured_probe.messages import parse_trace
from structured_probe.report import match_keys, write_report
from structured_probe.strategy import DEFAULT_EXTRACTION_MARKERS, classify


def _split_trace_document(doc: Any) -> tuple[list[Any], Any]:
    if isinstance(doc, list):
        return doc, None
    if isinstance(doc, dict) and isinstance(doc.get("messages"), list):
        return doc["messages"], doc.get("structured")
    print(
        "Trace file must hold a list of messages or a mapping with a 'messages' list.",
        file=sys.stderr,
    )
    sys.exit(1)


def cmd_classify(args: argparse.Namespace) -> None:
    raw_messages, structured = _split_trace_document(load_data_file(args.trace_file))
    if args.structured:
        structured = load_data_file(args.structured)

    try:
        trace = parse_trace(raw_messages)
    except ValueError as exc:
        print(f"Invalid trace: {exc}", file=sys.stderr)
        sys.exit(1)

    markers = tuple(args.marker) if args.marker else DEFAULT_EXTRACTION_MARKERS
    expected_keys = split_keys(args.expected_keys)
    classification = classify(trace, structured, extraction_markers=markers)

    if args.format == "json":
        data: dict[str, Any] = classification.model_dump(mode="json")
        if classification.json_recovered:
            km = match_keys(classification.recovered_json, expected_keys)
            data["key_match"] = {
                "matched": km.matched,
                "expected": list(km.expected),
                "actual": list(km.actual),
                "missing": list(km.missing),
            }
        print(json.dumps(data, indent=2))
        return

    write_report(
        classification,
        expected_keys=expected_keys,
        structured_result=structured,
        trace=trace,
        preview_chars=args.preview_chars,
    )


def register_parser(sub: Any) -> None:
    p = sub.add_parser("classify", help="Classify the structured-output strategy of a saved trace")
    p.add_argument("trace_file", help="JSON/YAML list of chat messages, or a mapping with 'messages' and 'structured'")
    p.add_argument("--structured", help="JSON/YAML file holding the structured result (overrides the trace file's)")
    p.add_argument("--expected-keys", help="Comma-separated keys the structured result should have")
    p.add_argument("--marker", action="append", help="Extraction tool name marker (repeatable, default: extract)")
    p.add_argument("--preview-chars", type=positive_int, default=200, help="Length of the last-message preview")
    p.add_argument("--format", choices=["report", "json"], default="report", help="Output format")
