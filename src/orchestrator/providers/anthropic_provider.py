"""Anthropic LLM providers (direct API and AWS Bedrock) for the orchestrator."""

from __future__ import annotations

import logging
import os
from typing import Any

from anthropic import AsyncAnthropic, AsyncAnthropicBedrock

from ..models import Message, ToolCall, ToolDef
from .base import LLMProvider, new_call_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


def _role_to_anthropic(role: str) -> str:
    # Tool results travel in user turns as tool_result blocks.
    return "assistant" if role == "assistant" else "user"


def _message_blocks(message: Message) -> list[dict[str, Any]]:
    if message.role == "tool":
        return [
            {
                "type": "tool_result",
                "tool_use_id": message.tool_call_id or "",
                "content": message.content or "",
            }
        ]
    blocks: list[dict[str, Any]] = []
    if message.content:
        blocks.append({"type": "text", "text": message.content})
    for tc in message.tool_calls:
        blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.args})
    return blocks


class AnthropicProvider(LLMProvider):
    """Anthropic-backed LLM provider."""

    def __init__(
        self,
        default_model: str = "claude-sonnet-4-5",
        api_key: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY") or ""
        self.max_tokens = max_tokens
        self._client: AsyncAnthropic | None = None

    def _get_client(self) -> AsyncAnthropic:
        if not self._client:
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    @staticmethod
    def _to_anthropic_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """
        Convert internal messages into Anthropic turns.

        Consecutive messages mapping to the same role are merged, so a batch of
        tool results becomes one user turn.
        """
        out: list[dict[str, Any]] = []
        for m in messages:
            role = _role_to_anthropic(m.role)
            blocks = _message_blocks(m)
            if not blocks:
                continue
            if out and out[-1]["role"] == role:
                out[-1]["content"].extend(blocks)
            else:
                out.append({"role": role, "content": blocks})
        return out

    @staticmethod
    def _to_anthropic_tools(tools: list[ToolDef]) -> list[dict[str, Any]]:
        return [{"name": t.name, "description": t.description, "input_schema": t.parameters} for t in tools]

    @staticmethod
    def _parse_response(response: Any) -> Message:
        """Collect text blocks into content and tool_use blocks into ToolCalls."""
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in getattr(response, "content", None) or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(getattr(block, "text", "") or "")
            elif block_type == "tool_use":
                args = getattr(block, "input", None)
                if not isinstance(args, dict):
                    args = {}
                tool_calls.append(
                    ToolCall(id=getattr(block, "id", "") or new_call_id(), name=getattr(block, "name", ""), args=args)
                )
            else:
                logger.debug("ignoring content block of type %s", block_type)
        return Message.assistant("".join(text_parts), tool_calls)

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDef] | None = None,
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> Message:
        """Non-streaming chat using the Anthropic Messages API."""
        client = self._get_client()
        params: dict[str, Any] = {
            "model": model or self.default_model,
            "max_tokens": self.max_tokens,
            "messages": self._to_anthropic_messages(messages),
            **kwargs,
        }
        if tools:
            params["tools"] = self._to_anthropic_tools(tools)

        resp = await client.messages.create(**params)
        return self._parse_response(resp)


class BedrockProvider(AnthropicProvider):
    """Anthropic models served through AWS Bedrock; credentials come from the AWS environment."""

    def __init__(
        self,
        default_model: str = "anthropic.claude-sonnet-4-5-20250929-v1:0",
        region: str | None = None,
        endpoint_url: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        super().__init__(default_model=default_model, max_tokens=max_tokens)
        self.region = region or os.getenv("AWS_DEFAULT_REGION") or os.getenv("AWS_REGION") or "us-east-1"
        self.endpoint_url = endpoint_url or os.getenv("BEDROCK_ENDPOINT_URL")
        self._client: AsyncAnthropicBedrock | None = None

    def _get_client(self) -> AsyncAnthropicBedrock:
        if not self._client:
            kwargs: dict[str, Any] = {"aws_region": self.region}
            if self.endpoint_url:
                kwargs["base_url"] = self.endpoint_url
            self._client = AsyncAnthropicBedrock(**kwargs)
        return self._client
