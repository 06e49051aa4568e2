"""Google Gemini LLM provider implementation for the orchestrator."""

from __future__ import annotations

import os
from typing import Any

from google import genai
from google.genai import types as genai_types

from ..models import Message, ToolCall, ToolDef
from .base import LLMProvider, new_call_id


class GeminiProvider(LLMProvider):
    """Gemini provider using the google-genai SDK."""

    def __init__(
        self,
        default_model: str = "gemini-2.5-flash",
        api_key: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY") or os.getenv(
            "GEMINI_API_KEY",
            "",
        )
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._client:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options={"api_version": "v1beta"},
            )
        return self._client

    @staticmethod
    def _to_gemini_contents(messages: list[Message]) -> list[genai_types.Content]:
        """Convert internal Message objects into Gemini contents.

        Tool results travel back as function responses on a user turn.
        """
        contents: list[genai_types.Content] = []
        for m in messages:
            parts: list[genai_types.Part] = []
            if m.role == "tool":
                call = m.tool_calls[0]
                parts.append(
                    genai_types.Part(
                        function_response=genai_types.FunctionResponse(
                            id=call.id or None,
                            name=call.name,
                            response={"result": m.content},
                        )
                    )
                )
                contents.append(genai_types.Content(role="user", parts=parts))
                continue

            if m.content:
                # Construct Part directly to avoid signature issues with from_text()
                parts.append(genai_types.Part(text=m.content))
            if m.role == "assistant":
                for tc in m.tool_calls:
                    parts.append(
                        genai_types.Part(
                            function_call=genai_types.FunctionCall(id=tc.id or None, name=tc.name, args=tc.args)
                        )
                    )
            if parts:
                contents.append(
                    genai_types.Content(role="model" if m.role == "assistant" else "user", parts=parts)
                )
        return contents

    @staticmethod
    def _to_gemini_tools(tools: list[ToolDef] | None) -> list[genai_types.Tool] | None:
        """Convert function tools into Gemini Tool declarations."""
        if not tools:
            return None
        function_declarations = [
            genai_types.FunctionDeclaration(
                name=t.name,
                description=t.description,
                parameters=t.parameters or None,
            )
            for t in tools
            if t.name
        ]
        if not function_declarations:
            return None
        return [genai_types.Tool(function_declarations=function_declarations)]

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDef] | None = None,
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> Message:
        """Non-streaming chat using Gemini generate_content."""
        client = self._get_client()
        config_args: dict[str, Any] = dict(kwargs)
        gemini_tools = self._to_gemini_tools(tools)
        if gemini_tools:
            config_args["tools"] = gemini_tools
            config_args["tool_config"] = genai_types.ToolConfig(
                function_calling_config=genai_types.FunctionCallingConfig(
                    mode=genai_types.FunctionCallingConfigMode.AUTO
                )
            )

        resp = await client.aio.models.generate_content(
            model=model or self.default_model,
            contents=self._to_gemini_contents(messages),
            config=genai_types.GenerateContentConfig(**config_args),
        )

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for cand in (getattr(resp, "candidates", None) or [])[:1]:
            content = getattr(cand, "content", None)
            for part in getattr(content, "parts", None) or []:
                if getattr(part, "text", None):
                    text_parts.append(part.text)
                fc = getattr(part, "function_call", None)
                if not fc:
                    continue
                tool_calls.append(
                    ToolCall(id=fc.id or new_call_id(), name=fc.name or "", args=dict(fc.args) if fc.args else {})
                )
        return Message.assistant("".join(text_parts), tool_calls)
