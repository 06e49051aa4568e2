"""Abstract LLM provider interface for the agent orchestrator."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any

from ..models import Message, ToolDef


def new_call_id() -> str:
    """Id for backends that do not assign one to their tool calls."""
    return f"call_{uuid.uuid4().hex[:24]}"


class LLMProvider(ABC):
    """
    Abstract LLM provider. Implement this to plug in any backend (Ollama, OpenAI, etc.).

    The orchestrator only depends on this interface. Providers are stateless
    translators: the full history goes in, one assistant Message comes out.
    """

    default_model: str = ""

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDef] | None = None,
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> Message:
        """
        Non-streaming chat. Returns a single assistant message.

        If the backend requests tools, ``tool_calls`` is non-empty and every
        call carries an id that the matching tool-role message echoes back.
        """
        ...
