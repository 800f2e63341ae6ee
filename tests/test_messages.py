"""Tests for structured_probe.messages: typed conversation turns."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from structured_probe.messages import (
    AssistantMessage,
    SystemMessage,
    ToolInvocation,
    ToolMessage,
    UserMessage,
    last_assistant,
    parse_message,
    parse_trace,
    to_openai,
)


class TestParseMessage:
    def test_user_and_system(self) -> None:
        assert parse_message({"role": "user", "content": "hi"}) == UserMessage(content="hi")
        assert parse_message({"role": "system", "content": "be brief"}) == SystemMessage(content="be brief")

    def test_assistant_with_openai_tool_calls(self) -> None:
        msg = parse_message({
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "tavily_search", "arguments": '{"query": "weather"}'},
            }],
        })
        assert isinstance(msg, AssistantMessage)
        assert msg.content == ""
        assert msg.tool_invocations == (
            ToolInvocation(name="tavily_search", arguments={"query": "weather"}, id="call_1"),
        )

    def test_assistant_with_flat_tool_calls(self) -> None:
        msg = parse_message({
            "role": "assistant",
            "content": "",
            "tool_calls": [{"name": "extract-1", "arguments": {"title": "Alien"}}],
        })
        assert isinstance(msg, AssistantMessage)
        assert msg.tool_invocations[0].name == "extract-1"
        assert msg.tool_invocations[0].arguments == {"title": "Alien"}

    def test_undecodable_arguments_become_empty(self) -> None:
        msg = parse_message({
            "role": "assistant",
            "tool_calls": [{"function": {"name": "f", "arguments": "{not json"}}],
        })
        assert isinstance(msg, AssistantMessage)
        assert msg.tool_invocations[0].arguments == {}

    def test_tool_message(self) -> None:
        msg = parse_message({"role": "tool", "content": "42", "name": "calc", "tool_call_id": "c1"})
        assert msg == ToolMessage(content="42", name="calc", tool_call_id="c1")

    def test_list_content_is_flattened(self) -> None:
        msg = parse_message({
            "role": "assistant",
            "content": [{"type": "text", "text": '{"a": '}, {"type": "text", "text": "1}"}, {"type": "image"}],
        })
        assert msg.content == '{"a": 1}'

    def test_langchain_aliases(self) -> None:
        assert isinstance(parse_message({"type": "ai", "content": "x"}), AssistantMessage)
        assert isinstance(parse_message({"type": "human", "content": "x"}), UserMessage)

    def test_attribute_objects(self) -> None:
        fn = SimpleNamespace(name="search", arguments=json.dumps({"q": "x"}))
        raw = SimpleNamespace(
            role="assistant",
            content="",
            tool_calls=[SimpleNamespace(id="c9", function=fn)],
        )
        msg = parse_message(raw)
        assert isinstance(msg, AssistantMessage)
        assert msg.tool_invocations[0] == ToolInvocation(name="search", arguments={"q": "x"}, id="c9")

    def test_unknown_role_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown message role"):
            parse_message({"role": "narrator", "content": "x"})

    def test_missing_role_raises(self) -> None:
        with pytest.raises(ValueError, match="no role"):
            parse_message({"content": "x"})

    def test_messages_are_frozen(self) -> None:
        msg = UserMessage(content="x")
        with pytest.raises(Exception):
            msg.content = "y"  # type: ignore[misc]


class TestTraceHelpers:
    def test_parse_trace_keeps_order(self) -> None:
        trace = parse_trace([
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
        ])
        assert [m.role for m in trace] == ["user", "assistant"]
        assert isinstance(trace, tuple)

    def test_last_assistant(self) -> None:
        trace = parse_trace([
            {"role": "assistant", "content": "first"},
            {"role": "user", "content": "q"},
            {"role": "assistant", "content": "second"},
            {"role": "tool", "content": "r", "name": "t"},
        ])
        found = last_assistant(trace)
        assert found is not None
        assert found.content == "second"

    def test_last_assistant_none(self) -> None:
        assert last_assistant([UserMessage(content="q")]) is None
        assert last_assistant([]) is None


class TestToOpenAI:
    def test_assistant_round_trip(self) -> None:
        msg = AssistantMessage(
            content="",
            tool_invocations=(ToolInvocation(name="search", arguments={"q": "x"}),),
        )
        out = to_openai(msg)
        assert out["role"] == "assistant"
        assert out["tool_calls"][0]["id"] == "call_0"
        assert out["tool_calls"][0]["function"]["name"] == "search"
        assert json.loads(out["tool_calls"][0]["function"]["arguments"]) == {"q": "x"}
        assert parse_message(out).tool_invocations[0].arguments == {"q": "x"}

    def test_tool_message_fields(self) -> None:
        out = to_openai(ToolMessage(content="r", name="search", tool_call_id="call_0"))
        assert out == {"role": "tool", "content": "r", "tool_call_id": "call_0", "name": "search"}

    def test_plain_user(self) -> None:
        assert to_openai(UserMessage(content="hi")) == {"role": "user", "content": "hi"}
