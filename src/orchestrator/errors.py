"""Exception types shared by the orchestrator and the protocol server."""

from __future__ import annotations


class CompellError(Exception):
    """Base class for all compell errors."""


class ConfigError(CompellError):
    """Configuration is missing, malformed or references unknown tools."""


class SessionNotFoundError(CompellError):
    """No persisted session exists for the requested id."""

    def __init__(self, session_id: str, reason: str | None = None) -> None:
        self.session_id = session_id
        msg = f"session not found: {session_id}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class SessionCorruptError(CompellError):
    """A persisted session exists but cannot be parsed."""


class ToolError(CompellError):
    """A tool failed to execute. The message is fed back to the LLM."""


class ToolNotFoundError(ToolError):
    """The LLM requested a tool that is not in the active toolset."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"tool '{name}' not found in the available toolset")


class LLMError(CompellError):
    """The LLM backend failed; the current turn is abandoned."""
