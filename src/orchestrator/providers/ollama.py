"""Ollama LLM provider implementation."""

from __future__ import annotations

import json
import os
from typing import Any

from ollama import AsyncClient

from ..models import Message, ToolCall, ToolDef
from .base import LLMProvider, new_call_id


def _message_to_chat(m: Message) -> dict[str, Any]:
    """Convert our Message to Ollama chat format."""
    out: dict[str, Any] = {"role": m.role, "content": m.content or ""}
    if m.role == "assistant" and m.tool_calls:
        out["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": tc.args},
            }
            for tc in m.tool_calls
        ]
    if m.role == "tool":
        out["tool_call_id"] = m.tool_call_id
        out["tool_name"] = m.tool_calls[0].name
    return out


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return {}
    if not isinstance(raw, dict):
        return {}
    return dict(raw)


class OllamaProvider(LLMProvider):
    """Ollama-backed LLM provider."""

    def __init__(self, default_model: str = "llama3.2", base_url: str | None = None):
        self.default_model = default_model
        self.base_url = base_url or os.getenv("OLLAMA_HOST") or "http://localhost:11434"

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDef] | None = None,
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> Message:
        client = AsyncClient(host=self.base_url)
        resp = await client.chat(
            model=model or self.default_model,
            messages=[_message_to_chat(m) for m in messages],
            tools=[t.to_tool_schema() for t in tools] if tools else None,
            stream=False,
            **kwargs,
        )
        msg = getattr(resp, "message", None)
        if msg is None:
            return Message.assistant("")

        tool_calls: list[ToolCall] = []
        for tc in getattr(msg, "tool_calls", None) or []:
            fn = getattr(tc, "function", None)
            if fn is None:
                continue
            tool_calls.append(
                ToolCall(
                    id=new_call_id(),
                    name=getattr(fn, "name", "") or "",
                    args=_parse_arguments(getattr(fn, "arguments", None)),
                )
            )
        return Message.assistant(getattr(msg, "content", None) or "", tool_calls)
