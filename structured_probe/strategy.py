"""Post-hoc detection of the structured-output strategy a response used.

Given a finished trace and the structured value the caller extracted from
it, ``classify`` reports whether the result came from tool calling, from
provider-native JSON, from a provider call that ignored the JSON request,
or from something it cannot tell apart.

Usage:
    from structured_probe.strategy import classify

    c = classify(trace, structured, extraction_markers=("extract", "MovieRecommendation"))
    print(c.strategy, c.succeeded, c.rationale)
"""

from __future__ import annotations

import json as _json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from structured_probe.messages import AssistantMessage, Message, ToolMessage, last_assistant

# Tool-calling evidence is only looked for near the end of the trace.
TOOL_WINDOW = 5

DEFAULT_EXTRACTION_MARKERS: tuple[str, ...] = ("extract",)


class StrategyType(str, Enum):
    TOOL_CALLING = "TOOL_CALLING"
    PROVIDER_JSON = "PROVIDER_JSON"
    PROVIDER_NO_JSON = "PROVIDER_NO_JSON"
    UNKNOWN = "UNKNOWN"


class StrategyClassification(BaseModel):
    """Which strategy produced a structured result, and whether it worked.

    ``json_recovered`` is True only when the last assistant text parsed as
    JSON; ``recovered_json`` then holds the parsed value (which may itself
    be ``None`` for a literal ``null``).
    """

    model_config = ConfigDict(frozen=True)

    strategy: StrategyType
    succeeded: bool
    rationale: str
    recovered_json: Any = None
    json_recovered: bool = False


# ---------------------------------------------------------------------------
# JSON parse result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JsonParse:
    ok: bool
    value: Any = None


NOT_JSON = JsonParse(ok=False)


def try_parse_json(text: str | None) -> JsonParse:
    """Parse text as a JSON value; return NOT_JSON instead of raising."""
    if not isinstance(text, str):
        return NOT_JSON
    try:
        return JsonParse(ok=True, value=_json.loads(text))
    except (ValueError, RecursionError):
        return NOT_JSON


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


def _find_tool_evidence(
    window: Sequence[Message],
    markers: tuple[str, ...],
) -> tuple[AssistantMessage | None, ToolMessage | None]:
    call_msg = next(
        (m for m in window if isinstance(m, AssistantMessage) and m.tool_invocations),
        None,
    )
    result_msg = next(
        (
            m
            for m in window
            if isinstance(m, ToolMessage)
            and m.name is not None
            and any(marker in m.name for marker in markers)
        ),
        None,
    )
    return call_msg, result_msg


def classify(
    trace: Iterable[Message],
    structured_result: Any = None,
    *,
    extraction_markers: Iterable[str] = DEFAULT_EXTRACTION_MARKERS,
) -> StrategyClassification:
    """Classify the structured-output strategy of a finished trace.

    Rules, first match wins:
      1. Tool invocation or extraction tool result in the last 5 messages
         -> TOOL_CALLING, succeeded iff a structured result exists.
      2. Last assistant content parses as JSON -> PROVIDER_JSON, succeeded.
      3. Last assistant content is non-empty text -> PROVIDER_NO_JSON, failed.
      4. Otherwise -> UNKNOWN, succeeded iff a structured result exists.

    ``structured_result=None`` means no structured result was produced.
    Never raises for any sequence of messages, including an empty one.
    """
    messages = list(trace)
    markers = tuple(m for m in extraction_markers if m)
    has_structured = structured_result is not None

    assistant = last_assistant(messages)
    content = assistant.content if assistant is not None else ""
    parsed = try_parse_json(content) if content else NOT_JSON

    call_msg, result_msg = _find_tool_evidence(messages[-TOOL_WINDOW:], markers)
    if call_msg is not None or result_msg is not None:
        tool_name = (
            (call_msg.tool_invocations[0].name if call_msg is not None else "")
            or (result_msg.name if result_msg is not None else "")
            or "unknown"
        )
        return StrategyClassification(
            strategy=StrategyType.TOOL_CALLING,
            succeeded=has_structured,
            rationale=f'Tool calling strategy detected (tool: "{tool_name}")',
            recovered_json=parsed.value,
            json_recovered=parsed.ok,
        )

    if parsed.ok:
        return StrategyClassification(
            strategy=StrategyType.PROVIDER_JSON,
            succeeded=True,
            rationale="Provider strategy - response is valid JSON",
            recovered_json=parsed.value,
            json_recovered=True,
        )

    if content:
        return StrategyClassification(
            strategy=StrategyType.PROVIDER_NO_JSON,
            succeeded=False,
            rationale="Provider strategy attempted but response is NOT JSON (plain text/markdown)",
        )

    return StrategyClassification(
        strategy=StrategyType.UNKNOWN,
        succeeded=has_structured,
        rationale="Could not determine strategy",
    )
