"""One-exchange provider calls through litellm.

Each ``arun_*`` function performs a single request (or, for
``arun_with_tools``, a single tool round) and returns a ``ProbeRun``: the
typed trace of the exchange plus whatever structured value could be
validated out of it. Nothing is retried, cached or repaired, so a broken
provider/strategy combination shows up as a broken ``ProbeRun``.

Strategies:
    arun_provider_strategy  response_format=json_schema (provider-native)
    arun_tool_strategy      forced extraction tool call
    arun_auto_strategy      provider when litellm says the model supports it
    arun_raw                plain completion, optional raw response_format
    arun_with_tools         caller's tools (e.g. MCP), optional response model

Provider exceptions propagate; callers wrap them with ``errors.wrap_error``.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, cast

import litellm
from pydantic import BaseModel, ValidationError

from structured_probe.messages import (
    AssistantMessage,
    Message,
    ToolMessage,
    parse_message,
    parse_trace,
    to_openai,
)

logger = logging.getLogger(__name__)

# Silence litellm's noisy default logging
litellm.suppress_debug_info = True

DEFAULT_TIMEOUT = 60

ToolExecutor = Callable[[str, dict[str, Any]], Awaitable[str]]


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


@dataclass
class ProbeRun:
    """Outcome of one exchange.

    Attributes:
        trace: Input messages followed by every turn the exchange produced.
        structured: Validated structured payload (plain dict), or None.
        model: Model string the request went to.
        strategy_requested: "provider", "tool", "auto/provider", "auto/tool",
            "raw" or "tools".
        raw_response: The last litellm response object. Excluded from repr.
        warnings: Validation problems that left ``structured`` empty.
    """

    trace: tuple[Message, ...]
    structured: Any
    model: str
    strategy_requested: str
    raw_response: Any = field(default=None, repr=False)
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Schema helpers
# ---------------------------------------------------------------------------


def _make_strict(schema: dict[str, Any]) -> None:
    if schema.get("type") == "object":
        schema["additionalProperties"] = False
        props = schema.get("properties", {})
        schema["required"] = list(props)
        for prop in props.values():
            _make_strict(prop)
    if isinstance(schema.get("items"), dict):
        _make_strict(schema["items"])
    for key in ("anyOf", "oneOf", "allOf"):
        for sub in schema.get(key, []):
            if isinstance(sub, dict):
                _make_strict(sub)
    for defn in schema.get("$defs", {}).values():
        _make_strict(defn)


def strict_json_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``schema`` that satisfies OpenAI strict mode.

    Every object gets ``additionalProperties: false`` and lists all of its
    properties as required. Pydantic's model_json_schema() does neither.
    """
    out = copy.deepcopy(schema)
    _make_strict(out)
    return out


def response_format_for(
    target: type[BaseModel] | dict[str, Any],
    *,
    name: str | None = None,
    strict: bool = True,
) -> dict[str, Any]:
    """Build a ``json_schema`` response_format from a model class or raw schema."""
    if isinstance(target, dict):
        schema = target
        schema_name = name or "response"
    else:
        schema = target.model_json_schema()
        schema_name = name or target.__name__
    if strict:
        schema = strict_json_schema(schema)
    return {
        "type": "json_schema",
        "json_schema": {"name": schema_name, "schema": schema, "strict": strict},
    }


def extraction_tool_name(response_model: type[BaseModel]) -> str:
    return f"extract_{response_model.__name__}"


def extraction_tool(response_model: type[BaseModel]) -> dict[str, Any]:
    """OpenAI tool whose arguments are the response model."""
    return {
        "type": "function",
        "function": {
            "name": extraction_tool_name(response_model),
            "description": (
                f"Return the final answer as a {response_model.__name__}. "
                "Call this exactly once."
            ),
            "parameters": response_model.model_json_schema(),
        },
    }


def bind_tools(tools: list[dict[str, Any]], *, strict: bool) -> list[dict[str, Any]]:
    """Copy tool definitions with ``function.strict`` set.

    Parameter schemas are left exactly as given, so strict binding of a
    schema without ``additionalProperties: false`` reaches the provider
    unchanged.
    """
    bound: list[dict[str, Any]] = []
    for tool in tools:
        t = copy.deepcopy(tool)
        t.setdefault("function", {})["strict"] = strict
        bound.append(t)
    return bound


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _extract_tool_calls(message: Any) -> list[dict[str, Any]]:
    """Extract tool calls from a response message into plain dicts."""
    if not message.tool_calls:
        return []
    result: list[dict[str, Any]] = []
    for tc in message.tool_calls:
        result.append({
            "id": tc.id,
            "function": {
                "name": tc.function.name,
                "arguments": tc.function.arguments,
            },
        })
    return result


def _assistant_from_response(response: Any) -> AssistantMessage:
    message = response.choices[0].message
    content = message.content
    return cast(AssistantMessage, parse_message({
        "role": "assistant",
        "content": content if isinstance(content, (str, list)) else None,
        "tool_calls": _extract_tool_calls(message),
    }))


def _validate(
    response_model: type[BaseModel],
    payload: str | dict[str, Any],
    warnings: list[str],
) -> dict[str, Any] | None:
    try:
        if isinstance(payload, str):
            parsed = response_model.model_validate_json(payload)
        else:
            parsed = response_model.model_validate(payload)
    except ValidationError as exc:
        msg = f"{response_model.__name__} validation failed: {exc.error_count()} error(s)"
        logger.warning("%s: %s", msg, exc)
        warnings.append(msg)
        return None
    return parsed.model_dump()


async def _acompletion(
    model: str,
    messages: list[dict[str, Any]],
    *,
    timeout: int,
    **kwargs: Any,
) -> Any:
    logger.debug(
        "acompletion model=%s messages=%d kwargs=%s",
        model, len(messages), sorted(kwargs),
    )
    return await litellm.acompletion(model=model, messages=messages, timeout=timeout, **kwargs)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


async def arun_provider_strategy(
    model: str,
    messages: list[dict[str, Any]],
    response_model: type[BaseModel],
    *,
    timeout: int = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> ProbeRun:
    """Ask for provider-native JSON via a json_schema response_format."""
    response = await _acompletion(
        model, messages, timeout=timeout,
        response_format=response_format_for(response_model), **kwargs,
    )
    assistant = _assistant_from_response(response)
    warnings: list[str] = []
    structured = None
    if assistant.content:
        structured = _validate(response_model, assistant.content, warnings)
    else:
        warnings.append("Provider returned empty content")
    return ProbeRun(
        trace=parse_trace(messages) + (assistant,),
        structured=structured,
        model=model,
        strategy_requested="provider",
        raw_response=response,
        warnings=warnings,
    )


async def arun_tool_strategy(
    model: str,
    messages: list[dict[str, Any]],
    response_model: type[BaseModel],
    *,
    timeout: int = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> ProbeRun:
    """Force a call to the extraction tool and validate its arguments."""
    tool_name = extraction_tool_name(response_model)
    response = await _acompletion(
        model, messages, timeout=timeout,
        tools=[extraction_tool(response_model)],
        tool_choice={"type": "function", "function": {"name": tool_name}},
        **kwargs,
    )
    assistant = _assistant_from_response(response)
    trace: tuple[Message, ...] = parse_trace(messages) + (assistant,)
    warnings: list[str] = []
    structured = None

    invocation = next((i for i in assistant.tool_invocations if i.name == tool_name), None)
    if invocation is None:
        warnings.append(f"Model did not call {tool_name}")
    else:
        structured = _validate(response_model, invocation.arguments, warnings)
        trace += (
            ToolMessage(
                content=f"Returned structured response: {invocation.arguments}",
                name=tool_name,
                tool_call_id=invocation.id,
            ),
        )
    return ProbeRun(
        trace=trace,
        structured=structured,
        model=model,
        strategy_requested="tool",
        raw_response=response,
        warnings=warnings,
    )


async def arun_auto_strategy(
    model: str,
    messages: list[dict[str, Any]],
    response_model: type[BaseModel],
    *,
    timeout: int = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> ProbeRun:
    """Pick provider or tool strategy from litellm's capability table."""
    if litellm.supports_response_schema(model=model):
        logger.info("auto strategy: %s supports response_schema, using provider", model)
        run = await arun_provider_strategy(model, messages, response_model, timeout=timeout, **kwargs)
        run.strategy_requested = "auto/provider"
    else:
        logger.info("auto strategy: %s lacks response_schema, using tool", model)
        run = await arun_tool_strategy(model, messages, response_model, timeout=timeout, **kwargs)
        run.strategy_requested = "auto/tool"
    return run


async def arun_raw(
    model: str,
    messages: list[dict[str, Any]],
    *,
    response_format: dict[str, Any] | None = None,
    response_model: type[BaseModel] | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> ProbeRun:
    """Single completion; ``response_format`` is sent as given, if any."""
    if response_format is not None:
        kwargs["response_format"] = response_format
    response = await _acompletion(model, messages, timeout=timeout, **kwargs)
    assistant = _assistant_from_response(response)
    warnings: list[str] = []
    structured = None
    if response_model is not None and assistant.content:
        structured = _validate(response_model, assistant.content, warnings)
    return ProbeRun(
        trace=parse_trace(messages) + (assistant,),
        structured=structured,
        model=model,
        strategy_requested="raw",
        raw_response=response,
        warnings=warnings,
    )


async def arun_with_tools(
    model: str,
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]],
    *,
    tool_executor: ToolExecutor,
    response_model: type[BaseModel] | None = None,
    strict: bool = False,
    timeout: int = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> ProbeRun:
    """Call with the caller's tools and run at most one tool round.

    Tool calls from the first response are executed through
    ``tool_executor`` and a second request gets the results. When
    ``response_model`` is given its response_format goes on both requests.
    """
    bound = bind_tools(tools, strict=strict)
    if response_model is not None:
        kwargs["response_format"] = response_format_for(response_model)

    convo = list(messages)
    response = await _acompletion(model, list(convo), timeout=timeout, tools=bound, **kwargs)
    assistant = _assistant_from_response(response)
    trace: tuple[Message, ...] = parse_trace(messages) + (assistant,)

    if assistant.tool_invocations:
        convo.append(to_openai(assistant))
        for i, inv in enumerate(assistant.tool_invocations):
            logger.debug("Executing tool %s", inv.name)
            result_text = await tool_executor(inv.name, inv.arguments)
            tool_msg = ToolMessage(
                content=result_text,
                name=inv.name,
                tool_call_id=inv.id or f"call_{i}",
            )
            convo.append(to_openai(tool_msg))
            trace += (tool_msg,)
        response = await _acompletion(model, list(convo), timeout=timeout, tools=bound, **kwargs)
        assistant = _assistant_from_response(response)
        trace += (assistant,)

    warnings: list[str] = []
    structured = None
    if response_model is not None:
        if assistant.content:
            structured = _validate(response_model, assistant.content, warnings)
        else:
            warnings.append("Final turn has no content to validate")
    return ProbeRun(
        trace=trace,
        structured=structured,
        model=model,
        strategy_requested="tools",
        raw_response=response,
        warnings=warnings,
    )
