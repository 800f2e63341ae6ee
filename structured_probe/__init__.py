"""Reproductions of structured-output and tool-calling defects.

The reusable piece is the strategy classifier: given a finished trace and
the structured value extracted from it, it says whether the result came
from tool calling or provider-native JSON, and whether it worked.

Usage:
    from structured_probe import analyze, classify, parse_trace

    trace = parse_trace([
        {"role": "user", "content": "Recommend a movie"},
        {"role": "assistant", "content": '{"title": "Blade Runner", "year": 1982}'},
    ])
    c = classify(trace, None)
    print(c.strategy, c.succeeded, c.recovered_json)

    # Classify and print a report with a schema key check
    analyze(trace, None, ["title", "year", "genre"])

    # Live reproductions
    import asyncio
    from structured_probe import ProbeConfig, run_scenario

    asyncio.run(run_scenario("gemini-structured-output", ProbeConfig.from_env()))
"""

from structured_probe.errors import (
    ProbeConfigurationError,
    ProbeError,
    ProviderAuthError,
    ProviderModelNotFoundError,
    ProviderRateLimitError,
    ProviderSchemaError,
    ProviderTransientError,
    classify_error,
    wrap_error,
)
from structured_probe.messages import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolInvocation,
    ToolMessage,
    UserMessage,
    last_assistant,
    parse_message,
    parse_trace,
    to_openai,
)
from structured_probe.strategy import (
    DEFAULT_EXTRACTION_MARKERS,
    NOT_JSON,
    JsonParse,
    StrategyClassification,
    StrategyType,
    classify,
    try_parse_json,
)
from structured_probe.report import (
    KeyMatch,
    LineSink,
    analyze,
    format_report,
    match_keys,
    write_report,
)
from structured_probe.config import ProbeConfig, load_env_file
from structured_probe.prompts import available_templates, load_prompt_file, render_prompt
from structured_probe.schemas import MovieRecommendation, SearchResult, schema_keys
from structured_probe.client import (
    ProbeRun,
    arun_auto_strategy,
    arun_provider_strategy,
    arun_raw,
    arun_tool_strategy,
    arun_with_tools,
    bind_tools,
    extraction_tool,
    response_format_for,
    strict_json_schema,
)
from structured_probe.mcp_tools import MCPToolSource, mcp_tool_to_openai
from structured_probe.scenarios import (
    SCENARIOS,
    Scenario,
    ScenarioOutcome,
    get_scenario,
    run_scenario,
)

__all__ = [
    # errors
    "ProbeConfigurationError",
    "ProbeError",
    "ProviderAuthError",
    "ProviderModelNotFoundError",
    "ProviderRateLimitError",
    "ProviderSchemaError",
    "ProviderTransientError",
    "classify_error",
    "wrap_error",
    # messages
    "AssistantMessage",
    "Message",
    "SystemMessage",
    "ToolInvocation",
    "ToolMessage",
    "UserMessage",
    "last_assistant",
    "parse_message",
    "parse_trace",
    "to_openai",
    # strategy
    "DEFAULT_EXTRACTION_MARKERS",
    "NOT_JSON",
    "JsonParse",
    "StrategyClassification",
    "StrategyType",
    "classify",
    "try_parse_json",
    # report
    "KeyMatch",
    "LineSink",
    "analyze",
    "format_report",
    "match_keys",
    "write_report",
    "ProbeConfig",
    "load_env_file",
    "available_templates",
    "load_prompt_file",
    "render_prompt",
    "MovieRecommendation",
    "SearchResult",
    "schema_keys",
    # client
    "ProbeRun",
    "arun_auto_strategy",
    "arun_provider_strategy",
    "arun_raw",
    "arun_tool_strategy",
    "arun_with_tools",
    "bind_tools",
    "extraction_tool",
    "response_format_for",
    "strict_json_schema",
    "MCPToolSource",
    "mcp_tool_to_openai",
    # scenarios
    "SCENARIOS",
    "Scenario",
    "ScenarioOutcome",
    "get_scenario",
    "run_scenario",
]
