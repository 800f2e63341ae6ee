"""Remote MCP servers as a source of OpenAI-format tools.

Connects to one MCP server over streamable HTTP, lists its tools in
OpenAI function-calling format, and executes calls by name. Schemas are
passed through exactly as the server publishes them.

Usage:
    async with MCPToolSource(config.tavily_server_url()) as source:
        tools = await source.list_tools()
        run = await arun_with_tools(model, messages, tools, tool_executor=source.call_tool)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MCP_INIT_TIMEOUT = 30.0
DEFAULT_TOOL_RESULT_MAX_LENGTH = 20_000


def _import_mcp() -> tuple[Any, Any]:
    """Lazily import mcp client components.

    Returns:
        (streamablehttp_client, ClientSession)
    """
    from mcp import ClientSession
    from mcp.client.streamable_http import streamablehttp_client

    return streamablehttp_client, ClientSession


def mcp_tool_to_openai(tool: Any) -> dict[str, Any]:
    """Convert an MCP Tool object to OpenAI function-calling format.

    MCP: {"name": "foo", "description": "...", "inputSchema": {...}}
    OpenAI: {"type": "function", "function": {"name": "foo", "description": "...", "parameters": {...}}}
    """
    parameters = tool.inputSchema
    if not isinstance(parameters, dict):
        parameters = {"type": "object", "properties": {}}
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description or "",
            "parameters": dict(parameters),
        },
    }


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"\n... [truncated {len(text) - max_length} chars]"


class MCPToolSource:
    """One streamable-HTTP MCP session, usable as an async context manager."""

    def __init__(
        self,
        url: str,
        *,
        init_timeout: float = DEFAULT_MCP_INIT_TIMEOUT,
        result_max_length: int = DEFAULT_TOOL_RESULT_MAX_LENGTH,
    ) -> None:
        self.url = url
        self.init_timeout = init_timeout
        self.result_max_length = result_max_length
        self._stack: AsyncExitStack | None = None
        self._session: Any = None

    async def __aenter__(self) -> "MCPToolSource":
        streamablehttp_client, ClientSession = _import_mcp()
        stack = AsyncExitStack()
        try:
            read_stream, write_stream, _ = await stack.enter_async_context(
                streamablehttp_client(self.url)
            )
            session = await stack.enter_async_context(
                ClientSession(read_stream, write_stream)
            )
            await asyncio.wait_for(session.initialize(), timeout=self.init_timeout)
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._session = None

    @property
    def session(self) -> Any:
        if self._session is None:
            raise RuntimeError("MCPToolSource is not connected; use 'async with'.")
        return self._session

    async def list_tools(self) -> list[dict[str, Any]]:
        result = await self.session.list_tools()
        tools = [mcp_tool_to_openai(t) for t in result.tools]
        logger.info("Loaded %d tools from MCP server", len(tools))
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool and return its text content.

        Error results come back as text prefixed with ``ERROR:`` so the model
        sees them as the tool's answer.
        """
        mcp_result = await self.session.call_tool(name, arguments)
        parts: list[str] = []
        for item in mcp_result.content or []:
            if hasattr(item, "text"):
                parts.append(item.text)
            else:
                parts.append(str(item))
        text = _truncate("\n".join(parts), self.result_max_length)
        if mcp_result.isError:
            logger.warning("MCP tool %s returned an error: %s", name, text[:200])
            return f"ERROR: {text}"
        return text
