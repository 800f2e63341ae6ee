"""Reproduction scenarios.

Each scenario runs a handful of cases against a real provider. A case is
one exchange: banner, call, structured value dump, strategy report.
Provider failures are the point of several scenarios, so a failing case is
wrapped, logged, reported and recorded; the scenario then moves on to its
next case.

Usage:
    from structured_probe.config import ProbeConfig
    from structured_probe.scenarios import run_scenario

    outcomes = asyncio.run(run_scenario("gemini-structured-output", ProbeConfig.from_env()))
"""

from __future__ import annotations

import json as _json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from structured_probe.client import (
    ProbeRun,
    arun_auto_strategy,
    arun_provider_strategy,
    arun_raw,
    arun_tool_strategy,
    arun_with_tools,
    response_format_for,
)
from structured_probe.config import ProbeConfig
from structured_probe.errors import ProbeError, wrap_error
from structured_probe.mcp_tools import MCPToolSource
from structured_probe.prompts import render_prompt
from structured_probe.report import LineSink, analyze
from structured_probe.schemas import (
    MOVIE_RECOMMENDATION_JSON_SCHEMA,
    MovieRecommendation,
    SearchResult,
    schema_keys,
)
from structured_probe.strategy import DEFAULT_EXTRACTION_MARKERS, StrategyClassification

logger = logging.getLogger(__name__)

BANNER = "=" * 70


@dataclass
class ScenarioOutcome:
    """Result of one case within a scenario."""

    scenario: str
    case: str
    classification: StrategyClassification | None = None
    structured: Any = None
    error: ProbeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


ScenarioFn = Callable[[ProbeConfig, LineSink], Awaitable[list[ScenarioOutcome]]]


@dataclass(frozen=True)
class Scenario:
    name: str
    title: str
    description: str
    run: ScenarioFn


SCENARIOS: dict[str, Scenario] = {}


def register_scenario(name: str, title: str, description: str) -> Callable[[ScenarioFn], ScenarioFn]:
    def decorator(fn: ScenarioFn) -> ScenarioFn:
        SCENARIOS[name] = Scenario(name=name, title=title, description=description, run=fn)
        return fn
    return decorator


def get_scenario(name: str) -> Scenario:
    try:
        return SCENARIOS[name]
    except KeyError:
        raise ValueError(
            f"Unknown scenario {name!r}. Available: {', '.join(sorted(SCENARIOS))}"
        ) from None


async def run_scenario(
    name: str,
    config: ProbeConfig,
    sink: LineSink = print,
) -> list[ScenarioOutcome]:
    scenario = get_scenario(name)
    logger.info("Running scenario %s", name)
    sink(scenario.title)
    sink("=" * len(scenario.title))
    sink("")
    return await scenario.run(config, sink)


# ---------------------------------------------------------------------------
# Case runner
# ---------------------------------------------------------------------------


def _markers_for(response_model: type[BaseModel] | None) -> tuple[str, ...]:
    if response_model is None:
        return DEFAULT_EXTRACTION_MARKERS
    return DEFAULT_EXTRACTION_MARKERS + (response_model.__name__,)


async def _run_case(
    scenario: str,
    case: str,
    call: Callable[[], Awaitable[ProbeRun]],
    *,
    config: ProbeConfig,
    sink: LineSink,
    response_model: type[BaseModel] | None = None,
    raw_only: bool = False,
) -> ScenarioOutcome:
    """Run one exchange and report it; provider errors become the outcome."""
    try:
        run = await call()
    except Exception as exc:
        err = wrap_error(exc)
        logger.error("%s/%s failed with %s: %s", scenario, case, type(err).__name__, err)
        sink("")
        sink(f"ERROR ({type(err).__name__}):")
        sink(str(err))
        return ScenarioOutcome(scenario=scenario, case=case, error=err)

    sink("Invocation completed!")
    sink("")
    sink("structured value:")
    sink(_json.dumps(run.structured, indent=2, default=str))
    for warning in run.warnings:
        sink(f"warning: {warning}")

    # A raw structured call only hands back the model's own message.
    trace = run.trace[-1:] if raw_only else run.trace
    classification = analyze(
        trace,
        run.structured,
        schema_keys(response_model) if response_model is not None else [],
        sink=sink,
        extraction_markers=_markers_for(response_model),
        preview_chars=config.preview_chars,
    )
    return ScenarioOutcome(
        scenario=scenario,
        case=case,
        classification=classification,
        structured=run.structured,
    )


def _banner(sink: LineSink, heading: str, using: str, expected: str) -> None:
    sink("")
    sink(BANNER)
    sink(heading)
    sink(BANNER)
    sink("")
    sink(f"Using: {using}")
    sink(f"   Expected: {expected}")
    sink("")


# ---------------------------------------------------------------------------
# MCP scenarios
# ---------------------------------------------------------------------------


@register_scenario(
    "mcp-strict-tools",
    "MCP tools bound with strict:true",
    "Tavily MCP tool schemas lack additionalProperties:false; binding them "
    "with strict:true makes OpenAI reject the request with a 400.",
)
async def _mcp_strict_tools(config: ProbeConfig, sink: LineSink) -> list[ScenarioOutcome]:
    name = "mcp-strict-tools"

    async def call() -> ProbeRun:
        async with MCPToolSource(config.tavily_server_url()) as source:
            tools = await source.list_tools()
            sink(f"Loaded {len(tools)} tools from Tavily MCP server")
            sink("Invoking model with strict tool binding...")
            return await arun_with_tools(
                config.openai_model,
                render_prompt("mcp_weather", city="San Francisco"),
                tools,
                tool_executor=source.call_tool,
                strict=True,
                timeout=config.timeout,
            )

    _banner(
        sink,
        f"TOOLS: {config.openai_model} + Tavily MCP tools, strict=True",
        "tools bound with function.strict = true",
        "400 Invalid schema ... 'additionalProperties' is required to be supplied and to be false",
    )
    return [await _run_case(name, "strict-binding", call, config=config, sink=sink)]


@register_scenario(
    "mcp-structured-output",
    "Structured response format with MCP tools",
    "A SearchResult response_format combined with Tavily MCP tools; the "
    "tool round and the structured final answer conflict.",
)
async def _mcp_structured_output(config: ProbeConfig, sink: LineSink) -> list[ScenarioOutcome]:
    name = "mcp-structured-output"

    async def call() -> ProbeRun:
        async with MCPToolSource(config.tavily_server_url()) as source:
            tools = await source.list_tools()
            sink(f"Loaded {len(tools)} tools from Tavily MCP server")
            sink("Invoking model with structured output...")
            return await arun_with_tools(
                config.openai_model,
                render_prompt("mcp_news_summary", topic="AI"),
                tools,
                tool_executor=source.call_tool,
                response_model=SearchResult,
                timeout=config.timeout,
            )

    _banner(
        sink,
        f"TOOLS: {config.openai_model} + Tavily MCP tools + SearchResult response_format",
        "response_format = SearchResult on every request of the tool round",
        "a SearchResult built from the search tool's results",
    )
    return [
        await _run_case(
            name, "tools-plus-response-format", call,
            config=config, sink=sink, response_model=SearchResult,
        )
    ]


# ---------------------------------------------------------------------------
# Gemini structured output
# ---------------------------------------------------------------------------


@register_scenario(
    "gemini-structured-output",
    "Gemini structured output strategies",
    "Runs one MovieRecommendation request through auto, provider, tool, raw "
    "and model-level-schema strategies and reports which one actually worked.",
)
async def _gemini_structured_output(config: ProbeConfig, sink: LineSink) -> list[ScenarioOutcome]:
    name = "gemini-structured-output"
    model = config.gemini_model
    messages = render_prompt("movie_recommendation", genre="sci-fi", decade="1980s")
    sink(f"Model: {model}")
    outcomes: list[ScenarioOutcome] = []

    _banner(
        sink,
        "TEST 1: default strategy (auto-detect)",
        "provider strategy if litellm reports response_schema support, else tool strategy",
        "native structured output when the model supports it",
    )
    outcomes.append(await _run_case(
        name, "auto",
        lambda: arun_auto_strategy(model, messages, MovieRecommendation, timeout=config.timeout),
        config=config, sink=sink, response_model=MovieRecommendation,
    ))

    _banner(
        sink,
        "TEST 2: provider strategy (native response schema)",
        "response_format = json_schema(MovieRecommendation)",
        "the provider's native JSON schema feature",
    )
    outcomes.append(await _run_case(
        name, "provider",
        lambda: arun_provider_strategy(model, messages, MovieRecommendation, timeout=config.timeout),
        config=config, sink=sink, response_model=MovieRecommendation,
    ))

    _banner(
        sink,
        "TEST 3: tool strategy (function calling)",
        "tools = [extract_MovieRecommendation], forced tool_choice",
        "a call to the extract_MovieRecommendation tool",
    )
    outcomes.append(await _run_case(
        name, "tool",
        lambda: arun_tool_strategy(model, messages, MovieRecommendation, timeout=config.timeout),
        config=config, sink=sink, response_model=MovieRecommendation,
    ))

    _banner(
        sink,
        "TEST 4: raw structured call",
        "a single completion with the response schema, raw message only",
        "native response schema",
    )
    outcomes.append(await _run_case(
        name, "raw",
        lambda: arun_raw(
            model, messages,
            response_format=response_format_for(MovieRecommendation),
            response_model=MovieRecommendation,
            timeout=config.timeout,
        ),
        config=config, sink=sink, response_model=MovieRecommendation, raw_only=True,
    ))

    _banner(
        sink,
        "TEST 5: model-level JSON schema",
        "hand-written JSON schema configured on the request, non-strict",
        "native JSON output configured at model level",
    )
    outcomes.append(await _run_case(
        name, "model-level-schema",
        lambda: arun_raw(
            model, messages,
            response_format=response_format_for(
                MOVIE_RECOMMENDATION_JSON_SCHEMA, name="MovieRecommendation", strict=False,
            ),
            response_model=MovieRecommendation,
            timeout=config.timeout,
        ),
        config=config, sink=sink, response_model=MovieRecommendation,
    ))

    sink("")
    sink(BANNER)
    sink("TESTS COMPLETE")
    sink(BANNER)
    return outcomes
