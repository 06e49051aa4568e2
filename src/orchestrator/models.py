"""Data models for messages, sessions, and tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, JsonValue, model_validator

Role = Literal["user", "assistant", "tool"]
Mode = Literal["auto", "prompt"]
ToolVerbosity = Literal["none", "info", "all"]

DEFAULT_MODE: Mode = "prompt"
DEFAULT_TOOLSET = "default"
DEFAULT_TOOL_VERBOSITY: ToolVerbosity = "none"


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class ToolCall(BaseModel):
    """A single tool invocation requested by the LLM.

    ``id`` is generated by the backend and must come back unchanged on the
    tool-role message that answers the call.
    """

    id: str = ""
    name: str
    args: dict[str, JsonValue] = Field(default_factory=dict)


class Message(BaseModel):
    """A single message in a conversation."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @model_validator(mode="after")
    def _tool_message_answers_one_call(self) -> Message:
        if self.role == "tool" and len(self.tool_calls) != 1:
            raise ValueError("a tool message must carry exactly one tool call")
        return self

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", content=text)

    @classmethod
    def assistant(cls, text: str = "", tool_calls: list[ToolCall] | None = None) -> Message:
        return cls(role="assistant", content=text, tool_calls=tool_calls or [])

    @classmethod
    def tool_result(cls, call: ToolCall, result: str) -> Message:
        """Tool-role message answering ``call``; only id and name are echoed."""
        return cls(role="tool", content=result, tool_calls=[ToolCall(id=call.id, name=call.name)])

    @property
    def tool_call_id(self) -> str | None:
        if self.role != "tool":
            return None
        return self.tool_calls[0].id


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session(BaseModel):
    """Conversation state stored in .compell/sessions/{name}.json."""

    name: str
    messages: list[Message] = Field(default_factory=list)
    mode: Mode = DEFAULT_MODE
    toolset: str = DEFAULT_TOOLSET
    tool_verbosity: ToolVerbosity = DEFAULT_TOOL_VERBOSITY
    acp: bool = False

    @property
    def id(self) -> str:
        return self.name

    def add_message(self, message: Message) -> None:
        """Append a message to the history. Messages are never edited or removed."""
        self.messages.append(message)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@dataclass
class ToolDef:
    """Tool definition handed to the LLM providers."""

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )  # JSON Schema

    def to_tool_schema(self) -> dict[str, Any]:
        """Standard function-calling schema (OpenAI-style) for any LLM provider."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
