"""Tests for structured_probe.scenarios: provider calls are mocked."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import litellm
import pytest

from structured_probe.client import ProbeRun
from structured_probe.config import ProbeConfig
from structured_probe.errors import ProbeConfigurationError, ProviderSchemaError
from structured_probe.messages import AssistantMessage, ToolInvocation, ToolMessage, UserMessage
from structured_probe.scenarios import SCENARIOS, get_scenario, run_scenario
from structured_probe.strategy import StrategyType

MOVIE = {"title": "Blade Runner", "year": 1982, "genre": "Sci-Fi", "reason": "r", "rating": 9.0}
USER = UserMessage(content="Recommend a classic sci-fi movie from the 1980s")


def _run(*turns: Any, structured: Any = None, strategy: str = "provider") -> ProbeRun:
    return ProbeRun(
        trace=(USER, *turns),
        structured=structured,
        model="gemini/gemini-3-pro-preview",
        strategy_requested=strategy,
    )


class _FakeSource:
    def __init__(self, url: str, **_: Any) -> None:
        self.url = url

    async def __aenter__(self) -> "_FakeSource":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def list_tools(self) -> list[dict[str, Any]]:
        return [{"type": "function", "function": {"name": "tavily_search", "parameters": {"type": "object"}}}]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        return "result"


class TestRegistry:
    def test_registered(self) -> None:
        assert set(SCENARIOS) == {
            "mcp-strict-tools",
            "mcp-structured-output",
            "gemini-structured-output",
        }

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown scenario"):
            get_scenario("nope")


class TestGeminiScenario:
    @pytest.mark.asyncio
    async def test_five_cases_classified(self) -> None:
        json_turn = AssistantMessage(content=json.dumps(MOVIE))
        prose_turn = AssistantMessage(content="**Blade Runner** is a great pick.")
        tool_turn = AssistantMessage(
            tool_invocations=(ToolInvocation(name="extract_MovieRecommendation", arguments=MOVIE),)
        )
        tool_result = ToolMessage(content="ok", name="extract_MovieRecommendation")
        out: list[str] = []
        with (
            patch("structured_probe.scenarios.arun_auto_strategy", AsyncMock(return_value=_run(prose_turn))),
            patch("structured_probe.scenarios.arun_provider_strategy", AsyncMock(return_value=_run(json_turn, structured=MOVIE))),
            patch("structured_probe.scenarios.arun_tool_strategy", AsyncMock(return_value=_run(tool_turn, tool_result, structured=MOVIE))),
            patch("structured_probe.scenarios.arun_raw", AsyncMock(return_value=_run(json_turn, structured=MOVIE))) as mock_raw,
        ):
            outcomes = await run_scenario("gemini-structured-output", ProbeConfig(), sink=out.append)

        assert [o.case for o in outcomes] == ["auto", "provider", "tool", "raw", "model-level-schema"]
        assert all(o.ok for o in outcomes)
        strategies = [o.classification.strategy for o in outcomes]  # type: ignore[union-attr]
        assert strategies == [
            StrategyType.PROVIDER_NO_JSON,
            StrategyType.PROVIDER_JSON,
            StrategyType.TOOL_CALLING,
            StrategyType.PROVIDER_JSON,
            StrategyType.PROVIDER_JSON,
        ]
        assert outcomes[0].classification.succeeded is False  # type: ignore[union-attr]
        assert "TESTS COMPLETE" in out
        assert "Schema match: YES" in out
        # model-level schema is sent non-strict
        rf = mock_raw.call_args_list[1].kwargs["response_format"]
        assert rf["json_schema"]["strict"] is False

    @pytest.mark.asyncio
    async def test_error_case_recorded_and_scenario_continues(self) -> None:
        err = litellm.BadRequestError(
            message="Invalid schema for response_format 'MovieRecommendation'",
            model="gemini/gemini-3-pro-preview",
            llm_provider="gemini",
        )
        ok_run = _run(AssistantMessage(content=json.dumps(MOVIE)), structured=MOVIE)
        out: list[str] = []
        with (
            patch("structured_probe.scenarios.arun_auto_strategy", AsyncMock(side_effect=err)),
            patch("structured_probe.scenarios.arun_provider_strategy", AsyncMock(return_value=ok_run)),
            patch("structured_probe.scenarios.arun_tool_strategy", AsyncMock(return_value=ok_run)),
            patch("structured_probe.scenarios.arun_raw", AsyncMock(return_value=ok_run)),
        ):
            outcomes = await run_scenario("gemini-structured-output", ProbeConfig(), sink=out.append)

        assert len(outcomes) == 5
        assert isinstance(outcomes[0].error, ProviderSchemaError)
        assert outcomes[0].classification is None
        assert all(o.ok for o in outcomes[1:])
        assert "ERROR (ProviderSchemaError):" in out

    @pytest.mark.asyncio
    async def test_raw_case_reports_only_model_message(self) -> None:
        # The raw case drops the input messages, so a stray tool call in
        # them cannot flip the classification.
        stale = AssistantMessage(tool_invocations=(ToolInvocation(name="x"),))
        raw_run = ProbeRun(
            trace=(stale, AssistantMessage(content=json.dumps(MOVIE))),
            structured=MOVIE,
            model="m",
            strategy_requested="raw",
        )
        with (
            patch("structured_probe.scenarios.arun_auto_strategy", AsyncMock(return_value=raw_run)),
            patch("structured_probe.scenarios.arun_provider_strategy", AsyncMock(return_value=raw_run)),
            patch("structured_probe.scenarios.arun_tool_strategy", AsyncMock(return_value=raw_run)),
            patch("structured_probe.scenarios.arun_raw", AsyncMock(return_value=raw_run)),
        ):
            outcomes = await run_scenario("gemini-structured-output", ProbeConfig(), sink=lambda _l: None)

        by_case = {o.case: o.classification.strategy for o in outcomes}  # type: ignore[union-attr]
        assert by_case["provider"] is StrategyType.TOOL_CALLING
        assert by_case["raw"] is StrategyType.PROVIDER_JSON


class TestMcpScenarios:
    @pytest.mark.asyncio
    async def test_missing_tavily_key(self) -> None:
        out: list[str] = []
        outcomes = await run_scenario("mcp-strict-tools", ProbeConfig(), sink=out.append)
        assert len(outcomes) == 1
        assert isinstance(outcomes[0].error, ProbeConfigurationError)
        assert any("TAVILY_API_KEY" in line for line in out)

    @pytest.mark.asyncio
    async def test_strict_tools_rejected(self) -> None:
        err = litellm.BadRequestError(
            message=(
                "Invalid schema for function 'tavily_search': In context=(), "
                "'additionalProperties' is required to be supplied and to be false."
            ),
            model="gpt-5.1",
            llm_provider="openai",
        )
        mock_with_tools = AsyncMock(side_effect=err)
        with (
            patch("structured_probe.scenarios.MCPToolSource", _FakeSource),
            patch("structured_probe.scenarios.arun_with_tools", mock_with_tools),
        ):
            outcomes = await run_scenario(
                "mcp-strict-tools", ProbeConfig(tavily_api_key="tvly-x"), sink=lambda _l: None,
            )

        assert isinstance(outcomes[0].error, ProviderSchemaError)
        kwargs = mock_with_tools.call_args.kwargs
        assert kwargs["strict"] is True
        assert mock_with_tools.call_args.args[1] == [
            {"role": "user", "content": "What is the weather in San Francisco?"}
        ]

    @pytest.mark.asyncio
    async def test_structured_output_with_tools(self) -> None:
        final = {"summary": "s", "sources": ["https://a.test"], "confidence": 0.5}
        run = ProbeRun(
            trace=(
                UserMessage(content="q"),
                AssistantMessage(tool_invocations=(ToolInvocation(name="tavily_search"),)),
                ToolMessage(content="result", name="tavily_search"),
                AssistantMessage(content=json.dumps(final)),
            ),
            structured=final,
            model="gpt-5.1",
            strategy_requested="tools",
        )
        mock_with_tools = AsyncMock(return_value=run)
        out: list[str] = []
        with (
            patch("structured_probe.scenarios.MCPToolSource", _FakeSource),
            patch("structured_probe.scenarios.arun_with_tools", mock_with_tools),
        ):
            outcomes = await run_scenario(
                "mcp-structured-output", ProbeConfig(tavily_api_key="tvly-x"), sink=out.append,
            )

        outcome = outcomes[0]
        assert outcome.ok
        assert outcome.structured == final
        assert outcome.classification.strategy is StrategyType.TOOL_CALLING  # type: ignore[union-attr]
        assert outcome.classification.succeeded is True  # type: ignore[union-attr]
        assert "Loaded 1 tools from Tavily MCP server" in out
        assert mock_with_tools.call_args.kwargs["response_model"].__name__ == "SearchResult"
