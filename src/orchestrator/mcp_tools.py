"""Tools proxied to external MCP servers over stdio."""

from __future__ import annotations

import logging
import os
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from .config import MCPServerConfig
from .errors import ToolError
from .tools import BaseTool

logger = logging.getLogger(__name__)


def _server_params(server: MCPServerConfig) -> StdioServerParameters:
    env = {**os.environ, **(server.env or {})}
    return StdioServerParameters(command=server.command, args=list(server.args), env=env)


class MCPTool(BaseTool):
    """A tool living on an MCP server. Each call opens a fresh stdio session."""

    def __init__(
        self,
        server: MCPServerConfig,
        tool_name: str,
        description: str = "",
        input_schema: dict[str, Any] | None = None,
    ) -> None:
        self.server = server
        self.tool_name = tool_name
        self._description = description
        self._input_schema = input_schema or {"type": "object", "properties": {}}

    @property
    def name(self) -> str:
        # Dotted or colon-qualified names are rejected by some backends.
        return self.tool_name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        return self._input_schema

    async def execute(self, args: dict[str, Any]) -> str:
        logger.debug("calling MCP tool %s.%s", self.server.name, self.tool_name)
        try:
            async with stdio_client(_server_params(self.server)) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    result = await session.call_tool(self.tool_name, arguments=args)
        except (OSError, ConnectionError, TimeoutError) as e:
            raise ToolError(f"failed to call tool '{self.tool_name}' on '{self.server.name}': {e}") from e

        text = "".join(
            getattr(block, "text", "") for block in (result.content or []) if getattr(block, "type", "") == "text"
        )
        if getattr(result, "isError", False):
            raise ToolError(text or f"tool '{self.tool_name}' reported an error")
        return text


async def discover_mcp_tools(server: MCPServerConfig) -> list[BaseTool]:
    """Start ``server``, list its tools (following pagination) and wrap each one."""
    tools: list[BaseTool] = []
    async with stdio_client(_server_params(server)) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()
            cursor: str | None = None
            while True:
                listing = await session.list_tools(cursor=cursor) if cursor else await session.list_tools()
                for info in listing.tools:
                    tools.append(
                        MCPTool(
                            server,
                            info.name,
                            description=info.description or "",
                            input_schema=info.inputSchema or None,
                        )
                    )
                cursor = getattr(listing, "nextCursor", None)
                if not cursor:
                    break
    return tools
