"""Conversation turns as a closed tagged union.

Provider SDKs hand back chat messages as dicts or as loosely typed objects
(litellm ``Message``, OpenAI ``ChatCompletionMessage``...). Everything in
structured_probe works on the immutable models below instead, so the
classifier never has to guess what a message is.

Usage:
    from structured_probe.messages import parse_trace, last_assistant

    trace = parse_trace(result_messages)
    msg = last_assistant(trace)
"""

from __future__ import annotations

import json as _json
import logging
from typing import Annotated, Any, Iterable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

logger = logging.getLogger(__name__)


class ToolInvocation(BaseModel):
    """A named tool call made by an assistant turn."""

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class SystemMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system"] = "system"
    content: str = ""


class UserMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    content: str = ""


class AssistantMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["assistant"] = "assistant"
    content: str = ""
    tool_invocations: tuple[ToolInvocation, ...] = ()


class ToolMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["tool"] = "tool"
    content: str = ""
    name: str | None = None
    tool_call_id: str | None = None


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

_message_adapter: TypeAdapter[Any] = TypeAdapter(Message)

# Role aliases used by LangChain-style serializations.
_ROLE_ALIASES = {
    "human": "user",
    "ai": "assistant",
    "model": "assistant",
    "function": "tool",
}


def _get(raw: Any, key: str, default: Any = None) -> Any:
    if isinstance(raw, dict):
        return raw.get(key, default)
    return getattr(raw, key, default)


def _flatten_content(content: Any) -> str:
    """Collapse provider content (str, None, or list of parts) into text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
                continue
            text = _get(part, "text")
            if isinstance(text, str):
                parts.append(text)
        return "".join(parts)
    return str(content)


def _decode_arguments(arguments: Any, tool_name: str) -> dict[str, Any]:
    if isinstance(arguments, dict):
        return dict(arguments)
    if isinstance(arguments, str) and arguments.strip():
        try:
            decoded = _json.loads(arguments)
        except _json.JSONDecodeError:
            logger.debug("Undecodable arguments for tool %r: %s", tool_name, arguments[:200])
            return {}
        if isinstance(decoded, dict):
            return decoded
    return {}


def _parse_tool_invocation(raw: Any) -> ToolInvocation:
    # OpenAI nests name/arguments under "function"; LangChain keeps them flat.
    fn = _get(raw, "function")
    source = fn if fn is not None else raw
    name = _get(source, "name") or ""
    return ToolInvocation(
        name=str(name),
        arguments=_decode_arguments(_get(source, "arguments"), str(name)),
        id=_get(raw, "id"),
    )


def parse_message(raw: Any) -> Message:
    """Build a typed message from a chat dict or provider message object.

    Raises:
        ValueError: If the role is missing or not one of system/user/assistant/tool.
    """
    role = _get(raw, "role")
    if role is None:
        role = _get(raw, "type")  # LangChain message dicts carry "type"
    if not isinstance(role, str):
        raise ValueError(f"Message has no role: {raw!r}")
    role = _ROLE_ALIASES.get(role.lower(), role.lower())

    content = _flatten_content(_get(raw, "content"))

    if role == "assistant":
        raw_calls = _get(raw, "tool_calls") or []
        return AssistantMessage(
            content=content,
            tool_invocations=tuple(_parse_tool_invocation(tc) for tc in raw_calls),
        )
    if role == "tool":
        name = _get(raw, "name")
        return ToolMessage(
            content=content,
            name=name if isinstance(name, str) else None,
            tool_call_id=_get(raw, "tool_call_id"),
        )
    if role in ("system", "user"):
        return _message_adapter.validate_python({"role": role, "content": content})
    raise ValueError(f"Unknown message role: {role!r}")


def parse_trace(raw_messages: Iterable[Any]) -> tuple[Message, ...]:
    """Parse an ordered sequence of raw messages into a trace."""
    return tuple(parse_message(m) for m in raw_messages)


def last_assistant(trace: Iterable[Message]) -> AssistantMessage | None:
    """Return the most recent assistant turn, or None."""
    for msg in reversed(list(trace)):
        if isinstance(msg, AssistantMessage):
            return msg
    return None


def to_openai(message: Message) -> dict[str, Any]:
    """Serialize a message back into OpenAI chat format."""
    out: dict[str, Any] = {"role": message.role, "content": message.content}
    if isinstance(message, AssistantMessage) and message.tool_invocations:
        out["tool_calls"] = [
            {
                "id": inv.id or f"call_{i}",
                "type": "function",
                "function": {"name": inv.name, "arguments": _json.dumps(inv.arguments)},
            }
            for i, inv in enumerate(message.tool_invocations)
        ]
    if isinstance(message, ToolMessage):
        if message.tool_call_id is not None:
            out["tool_call_id"] = message.tool_call_id
        if message.name is not None:
            out["name"] = message.name
    return out
