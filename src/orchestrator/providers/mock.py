"""Scripted provider used when no backend is configured, and in tests."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterable

from ..models import Message, ToolCall, ToolDef
from .base import LLMProvider

logger = logging.getLogger(__name__)


class MockProvider(LLMProvider):
    """Replays queued replies; falls back to a fixed behaviour once the queue is empty.

    Without a script it answers a tool-role history tail with
    ``tool_response`` and anything else with ``response`` (or a single call to
    ``tool_name`` when one is set).
    """

    default_model = "mock"

    def __init__(
        self,
        replies: Iterable[Message | Exception] | None = None,
        response: str = "This is a mock response.",
        tool_response: str = "The tool ran.",
        tool_name: str | None = None,
        tool_args: dict[str, Any] | None = None,
    ) -> None:
        self.replies: deque[Message | Exception] = deque(replies or [])
        self.response = response
        self.tool_response = tool_response
        self.tool_name = tool_name
        self.tool_args = tool_args or {}
        self.calls: list[tuple[list[Message], list[ToolDef]]] = []

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDef] | None = None,
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> Message:
        self.calls.append((list(messages), list(tools or [])))
        logger.debug("mock provider received %d messages", len(messages))

        if self.replies:
            reply = self.replies.popleft()
            if isinstance(reply, Exception):
                raise reply
            return reply

        if messages and messages[-1].role == "tool":
            return Message.assistant(self.tool_response)
        if self.tool_name:
            call = ToolCall(id="mock_call_1", name=self.tool_name, args=self.tool_args)
            return Message.assistant(tool_calls=[call])
        return Message.assistant(self.response)
