"""Tool protocol, built-in filesystem/command tools and the tool registry."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shlex
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import pathspec

from .config import CompellConfig, FilesystemAccess, Toolset
from .errors import ConfigError, ToolError
from .models import ToolDef

logger = logging.getLogger(__name__)


class BaseTool(ABC):
    """Base class for orchestrator tools.

    ``execute`` returns the textual result handed back to the LLM. Failures
    are raised (``ToolError`` or any other exception); the orchestration loop
    turns them into conversation content.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for parameters."""
        return {"type": "object", "properties": {}, "required": []}

    @abstractmethod
    async def execute(self, args: dict[str, Any]) -> str:
        ...

    def to_def(self) -> ToolDef:
        return ToolDef(name=self.name, description=self.description, parameters=self.parameters)

    def to_tool_schema(self) -> dict[str, Any]:
        """Standard function-calling schema for any LLM provider."""
        return self.to_def().to_tool_schema()


def _path_schema(description: str, extra: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    properties: dict[str, Any] = {"path": {"type": "string", "description": description}}
    properties.update(extra or {})
    return {"type": "object", "properties": properties, "required": required or ["path"]}


def _require_str(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str):
        raise ToolError(f"missing or invalid '{key}' argument")
    return value


# ---------------------------------------------------------------------------
# Filesystem tools
# ---------------------------------------------------------------------------


class PathGuard:
    """Checks paths against the hidden / read-only glob lists (gitignore syntax)."""

    def __init__(self, access: FilesystemAccess) -> None:
        self._hidden = pathspec.GitIgnoreSpec.from_lines(access.hidden)
        self._read_only = pathspec.GitIgnoreSpec.from_lines(access.read_only)

    @staticmethod
    def _normalize(path: str) -> str:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.resolve().relative_to(Path.cwd().resolve())
            except ValueError:
                return p.as_posix()
        return p.as_posix()

    def is_hidden(self, path: str) -> bool:
        return self._hidden.match_file(self._normalize(path))

    def is_read_only(self, path: str) -> bool:
        return self._read_only.match_file(self._normalize(path))

    def check_readable(self, path: str) -> None:
        if self.is_hidden(path):
            raise ToolError(f"access denied: path '{path}' is hidden")

    def check_writable(self, path: str) -> None:
        self.check_readable(path)
        if self.is_read_only(path):
            raise ToolError(f"access denied: path '{path}' is read-only")


class FilesystemTool(BaseTool):
    """Shared plumbing for tools operating on one path."""

    def __init__(self, access: FilesystemAccess | None = None) -> None:
        self.guard = PathGuard(access or FilesystemAccess())


class ReadFileTool(FilesystemTool):
    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Reads the entire content of a file. Args: path (string)."

    @property
    def parameters(self) -> dict[str, Any]:
        return _path_schema("Path of the file to read")

    async def execute(self, args: dict[str, Any]) -> str:
        path = _require_str(args, "path")
        self.guard.check_readable(path)
        try:
            return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except OSError as e:
            raise ToolError(f"failed to read file '{path}': {e}") from e


class ReadDirTool(FilesystemTool):
    @property
    def name(self) -> str:
        return "read_dir"

    @property
    def description(self) -> str:
        return "Lists the entries of a directory; subdirectories end with '/'. Args: path (string)."

    @property
    def parameters(self) -> dict[str, Any]:
        return _path_schema("Directory to list")

    def _list(self, path: str) -> str:
        entries = []
        for entry in sorted(os.scandir(path), key=lambda e: e.name):
            full = os.path.join(path, entry.name)
            if self.guard.is_hidden(full):
                continue
            entries.append(entry.name + "/" if entry.is_dir() else entry.name)
        return "\n".join(entries)

    async def execute(self, args: dict[str, Any]) -> str:
        path = _require_str(args, "path")
        self.guard.check_readable(path)
        try:
            return await asyncio.to_thread(self._list, path)
        except OSError as e:
            raise ToolError(f"failed to read directory '{path}': {e}") from e


class WriteFileTool(FilesystemTool):
    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return (
            "Writes content to a file. Overwrites the file unless optional `start_line` and "
            "`end_line` are provided to replace a specific range. Args: path (string), "
            "content (string), [start_line (int)], [end_line (int)]."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return _path_schema(
            "Path of the file to write",
            {
                "content": {"type": "string", "description": "New content"},
                "start_line": {"type": "integer", "description": "First line to replace (1-based)"},
                "end_line": {"type": "integer", "description": "Last line to replace (inclusive)"},
            },
            required=["path", "content"],
        )

    async def execute(self, args: dict[str, Any]) -> str:
        path = args.get("path")
        content = args.get("content")
        if not isinstance(path, str) or not isinstance(content, str):
            raise ToolError("missing or invalid 'path' or 'content' arguments")
        self.guard.check_writable(path)

        has_start = args.get("start_line") is not None
        has_end = args.get("end_line") is not None
        if has_start or has_end:
            if not (has_start and has_end):
                raise ToolError("for partial write, both 'start_line' and 'end_line' must be provided")
            start, end = args["start_line"], args["end_line"]
            if isinstance(start, bool) or not isinstance(start, (int, float)):
                raise ToolError("invalid 'start_line' argument: must be a number")
            if isinstance(end, bool) or not isinstance(end, (int, float)):
                raise ToolError("invalid 'end_line' argument: must be a number")
            return await asyncio.to_thread(self._partial_write, path, content, int(start), int(end))

        try:
            await asyncio.to_thread(Path(path).write_text, content, encoding="utf-8")
        except OSError as e:
            raise ToolError(f"failed to write to file '{path}': {e}") from e
        return f"Successfully wrote {len(content.encode('utf-8'))} bytes to {path}"

    @staticmethod
    def _partial_write(path: str, new_content: str, start_line: int, end_line: int) -> str:
        if start_line <= 0 or end_line < start_line:
            raise ToolError("invalid line numbers: start_line must be >= 1 and end_line must be >= start_line")
        file = Path(path)
        if not file.exists():
            raise ToolError(f"cannot perform partial write: file '{path}' does not exist")
        try:
            lines = file.read_text(encoding="utf-8").split("\n")
        except OSError as e:
            raise ToolError(f"failed to read file for partial write '{path}': {e}") from e

        if start_line > len(lines):
            raise ToolError(
                f"start_line {start_line} is greater than the number of lines in the file ({len(lines)})"
            )
        if end_line > len(lines):
            raise ToolError(
                f"end_line {end_line} is greater than the number of lines in the file ({len(lines)})"
            )

        new_lines = lines[: start_line - 1] + [new_content] + lines[end_line:]
        try:
            file.write_text("\n".join(new_lines), encoding="utf-8")
        except OSError as e:
            raise ToolError(f"failed to write updated content to file '{path}': {e}") from e
        return f"Successfully replaced lines {start_line}-{end_line} in {path}"


class CreateDirTool(FilesystemTool):
    @property
    def name(self) -> str:
        return "create_dir"

    @property
    def description(self) -> str:
        return "Creates a new directory. Args: path (string)."

    @property
    def parameters(self) -> dict[str, Any]:
        return _path_schema("Directory to create (parents are created as needed)")

    async def execute(self, args: dict[str, Any]) -> str:
        path = _require_str(args, "path")
        self.guard.check_writable(path)
        try:
            await asyncio.to_thread(os.makedirs, path, exist_ok=True)
        except OSError as e:
            raise ToolError(f"failed to create directory '{path}': {e}") from e
        return f"Successfully created directory {path}"


class DeleteFileTool(FilesystemTool):
    @property
    def name(self) -> str:
        return "delete_file"

    @property
    def description(self) -> str:
        return "Deletes a file. Args: path (string)."

    @property
    def parameters(self) -> dict[str, Any]:
        return _path_schema("File to delete")

    async def execute(self, args: dict[str, Any]) -> str:
        path = _require_str(args, "path")
        self.guard.check_writable(path)
        try:
            await asyncio.to_thread(os.remove, path)
        except OSError as e:
            raise ToolError(f"failed to delete file '{path}': {e}") from e
        return f"Successfully deleted file {path}"


class DeleteDirTool(FilesystemTool):
    @property
    def name(self) -> str:
        return "delete_dir"

    @property
    def description(self) -> str:
        return "Deletes an empty directory. Args: path (string)."

    @property
    def parameters(self) -> dict[str, Any]:
        return _path_schema("Empty directory to delete")

    async def execute(self, args: dict[str, Any]) -> str:
        path = _require_str(args, "path")
        self.guard.check_writable(path)
        # rmdir refuses non-empty directories
        try:
            await asyncio.to_thread(os.rmdir, path)
        except OSError as e:
            raise ToolError(f"failed to delete directory '{path}': {e}") from e
        return f"Successfully deleted directory {path}"


# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------


def is_command_allowed(command: str, allowed: list[str]) -> bool:
    """True if ``command`` fully matches one of the ``allowed`` regular expressions."""
    if not command.split():
        return False
    for pattern in allowed:
        try:
            if re.fullmatch(pattern, command):
                return True
        except re.error as e:
            logger.warning("invalid regex in allowed_commands '%s': %s", pattern, e)
            if command == pattern:
                return True
    return False


class ExecuteCommandTool(BaseTool):
    """Runs an allow-listed command without a shell and returns its combined output."""

    def __init__(self, allowed_commands: list[str] | None = None) -> None:
        self.allowed_commands = list(allowed_commands or [])

    @property
    def name(self) -> str:
        return "execute_command"

    @property
    def description(self) -> str:
        if not self.allowed_commands:
            return "Executes a shell command. No commands are currently allowed. Args: command (string)."
        allowed_list = "".join(f"- {cmd}\n" for cmd in self.allowed_commands)
        return (
            "Executes a shell command. Args: command (string).\n"
            f"Allowed command patterns:\n{allowed_list}"
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"command": {"type": "string", "description": "Command line to run"}},
            "required": ["command"],
        }

    async def execute(self, args: dict[str, Any]) -> str:
        command = _require_str(args, "command")
        if not is_command_allowed(command, self.allowed_commands):
            raise ToolError(f"command '{command}' is not in the list of allowed commands")
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise ToolError(f"could not parse command '{command}': {e}") from e

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ToolError(f"command execution failed: {e}") from e
        stdout, _ = await proc.communicate()
        output = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise ToolError(
                f"command execution failed: exit status {proc.returncode}. Output:\n{output}"
            )
        return f"Command executed successfully. Output:\n{output}"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Holds the built-in tools and the tools discovered on MCP servers."""

    def __init__(self, config: CompellConfig | None = None) -> None:
        self.config = config or CompellConfig()
        self._tools: dict[str, BaseTool] = {}
        self._mcp_servers: dict[str, list[BaseTool]] = {}

        access = self.config.filesystem_access
        for tool in (
            ReadFileTool(access),
            ReadDirTool(access),
            WriteFileTool(access),
            CreateDirTool(access),
            DeleteFileTool(access),
            DeleteDirTool(access),
            ExecuteCommandTool(self.config.allowed_commands),
        ):
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def register_mcp_server(self, server_name: str, tools: list[BaseTool]) -> None:
        self._mcp_servers[server_name] = list(tools)

    async def connect_mcp_servers(self) -> None:
        """Discover the tools of every configured MCP server. Failing servers are skipped."""
        from .mcp_tools import discover_mcp_tools

        for server in self.config.additional_mcp_servers:
            try:
                tools = await discover_mcp_tools(server)
            except Exception as e:
                logger.error("failed to initialize MCP client for '%s': %s", server.name, e)
                continue
            self.register_mcp_server(server.name, tools)
            logger.info("initialized MCP client for '%s' with %d tools", server.name, len(tools))

    def get_active_tools(self, toolset: Toolset) -> list[BaseTool]:
        """Return the tool instances named by ``toolset``.

        MCP tools are written ``<server>.<tool>``; ``<server>.*`` selects every
        tool of that server.
        """
        active: list[BaseTool] = []
        for tool_name in toolset.tools:
            if "." in tool_name:
                server_name, mcp_tool_name = tool_name.split(".", 1)
                server_tools = self._mcp_servers.get(server_name)
                if server_tools is None:
                    raise ConfigError(f"MCP server '{server_name}' for tool '{tool_name}' not registered")
                if mcp_tool_name == "*":
                    active.extend(server_tools)
                    continue
                match = next((t for t in server_tools if t.name == mcp_tool_name), None)
                if match is None:
                    raise ConfigError(f"MCP tool '{mcp_tool_name}' not found on server '{server_name}'")
                active.append(match)
                continue

            tool = self.get_tool(tool_name)
            if tool is None:
                raise ConfigError(f"tool '{tool_name}' from toolset '{toolset.name}' is not registered")
            active.append(tool)
        return active
