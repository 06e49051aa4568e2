"""Agent orchestrator: LLM–tool loop with session storage."""

from .errors import (
    CompellError,
    ConfigError,
    LLMError,
    SessionCorruptError,
    SessionNotFoundError,
    ToolError,
    ToolNotFoundError,
)
from .loop import DENIED_RESULT, Agent, TurnObserver
from .models import Message, Session, ToolCall, ToolDef
from .providers import LLMProvider, MockProvider
from .session_store import SessionStore
from .tools import BaseTool, ToolRegistry

__all__ = [
    "Agent",
    "TurnObserver",
    "DENIED_RESULT",
    "Message",
    "Session",
    "ToolCall",
    "ToolDef",
    "SessionStore",
    "BaseTool",
    "ToolRegistry",
    "LLMProvider",
    "MockProvider",
    "CompellError",
    "ConfigError",
    "LLMError",
    "SessionCorruptError",
    "SessionNotFoundError",
    "ToolError",
    "ToolNotFoundError",
]
