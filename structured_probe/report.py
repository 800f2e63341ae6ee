"""Human-readable strategy reports.

Formatting is separate from writing: ``format_report`` returns lines,
``write_report`` pushes them into any ``Callable[[str], None]`` sink
(``print`` by default, ``logger.info`` or ``list.append`` work too).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from structured_probe.messages import Message, last_assistant
from structured_probe.strategy import (
    DEFAULT_EXTRACTION_MARKERS,
    StrategyClassification,
    classify,
)

LineSink = Callable[[str], None]

RULE = "─" * 50
DEFAULT_PREVIEW_CHARS = 200


@dataclass(frozen=True)
class KeyMatch:
    """Comparison of recovered JSON keys against expected schema keys."""

    expected: tuple[str, ...]
    actual: tuple[str, ...]
    missing: tuple[str, ...]

    @property
    def matched(self) -> bool:
        return not self.missing


def match_keys(recovered_json: Any, expected_keys: Iterable[str]) -> KeyMatch:
    """Check that every expected key is present (exact, case-sensitive)."""
    expected = tuple(expected_keys)
    actual = tuple(str(k) for k in recovered_json) if isinstance(recovered_json, dict) else ()
    present = set(actual)
    return KeyMatch(
        expected=expected,
        actual=actual,
        missing=tuple(k for k in expected if k not in present),
    )


def format_report(
    classification: StrategyClassification,
    *,
    expected_keys: Sequence[str] = (),
    structured_result: Any = None,
    trace: Iterable[Message] = (),
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> list[str]:
    """Render a classification as report lines."""
    lines = [
        "",
        RULE,
        "STRATEGY ANALYSIS",
        RULE,
        f"Strategy Detected: {classification.strategy.value}",
        f"Details: {classification.rationale}",
        f"structured result defined: {structured_result is not None}",
        "Structured output WORKED" if classification.succeeded else "Structured output FAILED",
    ]

    if classification.json_recovered:
        km = match_keys(classification.recovered_json, expected_keys)
        lines.append("")
        lines.append(f"Parsed JSON keys: [{', '.join(km.actual)}]")
        lines.append(f"Expected schema keys: [{', '.join(km.expected)}]")
        lines.append(f"Schema match: {'YES' if km.matched else 'NO'}")
        if not km.matched:
            lines.append(f"Missing keys: [{', '.join(km.missing)}]")

    assistant = last_assistant(trace)
    if assistant is not None and assistant.content:
        preview = assistant.content[:preview_chars]
        ellipsis = "..." if len(assistant.content) > preview_chars else ""
        lines.append("")
        lines.append(f"Last AI message preview (first {preview_chars} chars):")
        lines.append(f'"{preview}{ellipsis}"')

    lines.append(RULE)
    return lines


def write_report(
    classification: StrategyClassification,
    *,
    sink: LineSink = print,
    expected_keys: Sequence[str] = (),
    structured_result: Any = None,
    trace: Iterable[Message] = (),
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> None:
    for line in format_report(
        classification,
        expected_keys=expected_keys,
        structured_result=structured_result,
        trace=trace,
        preview_chars=preview_chars,
    ):
        sink(line)


def analyze(
    trace: Sequence[Message],
    structured_result: Any,
    expected_keys: Sequence[str],
    *,
    sink: LineSink = print,
    extraction_markers: Iterable[str] = DEFAULT_EXTRACTION_MARKERS,
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> StrategyClassification:
    """Classify a trace and write its report. Returns the classification."""
    classification = classify(
        trace, structured_result, extraction_markers=extraction_markers,
    )
    write_report(
        classification,
        sink=sink,
        expected_keys=expected_keys,
        structured_result=structured_result,
        trace=trace,
        preview_chars=preview_chars,
    )
    return classification
