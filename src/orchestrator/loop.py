"""Main agent–tool loop orchestrator."""

from __future__ import annotations

import logging
from typing import Iterable

from .config import CompellConfig
from .errors import LLMError, ToolNotFoundError
from .models import (
    DEFAULT_MODE,
    DEFAULT_TOOL_VERBOSITY,
    DEFAULT_TOOLSET,
    Message,
    Mode,
    Session,
    ToolCall,
    ToolVerbosity,
)
from .providers import LLMProvider
from .session_store import SessionStore
from .tools import BaseTool, ToolRegistry

logger = logging.getLogger(__name__)

DENIED_RESULT = "User denied tool execution."


class TurnObserver:
    """Receives the events of one turn.

    Front-ends subclass this and override the hooks they care about. The
    defaults ignore every event and approve every tool call.
    """

    async def on_assistant_message(self, text: str) -> None:
        return None

    async def on_tool_call(self, call: ToolCall) -> None:
        return None

    async def on_tool_result(self, call: ToolCall, result: str) -> None:
        return None

    async def should_execute_tool(self, call: ToolCall) -> bool:
        return True

    async def on_warning(self, text: str) -> None:
        return None


class Agent:
    """Drives an LLM provider and a set of tools against a Session.

    ``mode``, ``toolset``, ``tool_verbosity`` and ``acp`` are the agent's
    current settings; the protocol server seeds new sessions with them.
    """

    def __init__(
        self,
        provider: LLMProvider,
        tools: Iterable[BaseTool] | None = None,
        store: SessionStore | None = None,
        *,
        mode: Mode = DEFAULT_MODE,
        toolset: str = DEFAULT_TOOLSET,
        tool_verbosity: ToolVerbosity = DEFAULT_TOOL_VERBOSITY,
        acp: bool = False,
    ) -> None:
        self.provider = provider
        self.tools = list(tools or [])
        self.store = store or SessionStore()
        self.mode = mode
        self.toolset = toolset
        self.tool_verbosity = tool_verbosity
        self.acp = acp

    @classmethod
    async def from_config(
        cls,
        config: CompellConfig,
        provider: LLMProvider,
        store: SessionStore | None = None,
        *,
        mode: Mode = DEFAULT_MODE,
        toolset: str = DEFAULT_TOOLSET,
        tool_verbosity: ToolVerbosity = DEFAULT_TOOL_VERBOSITY,
        acp: bool = False,
    ) -> Agent:
        """Build an agent whose tools are the configured toolset (MCP servers included)."""
        registry = ToolRegistry(config)
        await registry.connect_mcp_servers()
        tools = registry.get_active_tools(config.get_toolset(toolset))
        logger.info("agent ready with %d tools from toolset '%s'", len(tools), toolset)
        return cls(
            provider,
            tools,
            store,
            mode=mode,
            toolset=toolset,
            tool_verbosity=tool_verbosity,
            acp=acp,
        )

    def seed_session(self, session: Session) -> Session:
        """Copy the agent's current settings onto ``session``."""
        session.mode = self.mode
        session.toolset = self.toolset
        session.tool_verbosity = self.tool_verbosity
        session.acp = self.acp
        return session

    def find_tool(self, name: str) -> BaseTool | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    async def process_user_input(
        self,
        session: Session,
        user_text: str,
        observer: TurnObserver | None = None,
    ) -> None:
        """
        Run one turn: append the user message, then LLM → execute tools →
        repeat until the LLM answers without tool calls.

        The session is persisted after a plain answer and after every batch of
        tool results. Tool failures become tool-role content; an LLM failure
        raises LLMError and abandons the turn.
        """
        observer = observer or TurnObserver()
        tool_defs = [t.to_def() for t in self.tools]
        session.add_message(Message.user(user_text))

        round_no = 0
        while True:
            round_no += 1
            logger.debug("session %s: round %d with %d messages", session.name, round_no, len(session.messages))
            try:
                reply = await self.provider.chat(list(session.messages), tool_defs)
            except Exception as e:
                logger.error("session %s: LLM chat failed: %s", session.name, e)
                await self._persist(session, observer)
                raise LLMError(f"LLM chat failed: {e}") from e
            if reply.role != "assistant":
                await self._persist(session, observer)
                raise LLMError(f"LLM returned a '{reply.role}' message instead of an assistant message")

            session.add_message(reply)
            if reply.content:
                await observer.on_assistant_message(reply.content)

            if not reply.tool_calls:
                await self._persist(session, observer)
                return

            for call in reply.tool_calls:
                await observer.on_tool_call(call)
                result = await self._execute_tool_call(session, call, observer)
                await observer.on_tool_result(call, result)
                session.add_message(Message.tool_result(call, result))

            await self._persist(session, observer)

    async def _execute_tool_call(self, session: Session, call: ToolCall, observer: TurnObserver) -> str:
        if session.mode == "prompt" and not await observer.should_execute_tool(call):
            logger.info("session %s: tool %s denied", session.name, call.name)
            return DENIED_RESULT

        try:
            tool = self.find_tool(call.name)
            if tool is None:
                raise ToolNotFoundError(call.name)
            logger.debug("session %s: executing tool %s", session.name, call.name)
            return await tool.execute(dict(call.args))
        except Exception as e:
            logger.warning("tool %s failed: %s", call.name, e)
            return f"Error executing tool {call.name}: {e}"

    async def _persist(self, session: Session, observer: TurnObserver) -> None:
        try:
            self.store.save(session)
        except (OSError, ValueError) as e:
            logger.warning("failed to save session %s: %s", session.name, e)
            await observer.on_warning(f"failed to save session: {e}")
