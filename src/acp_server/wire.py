"""JSON-RPC 2.0 envelopes and Agent Client Protocol payloads."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from src.orchestrator.models import ToolCall

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = 1

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

ERROR_MESSAGES = {
    PARSE_ERROR: "Parse error",
    METHOD_NOT_FOUND: "Method not found",
    INVALID_PARAMS: "Invalid params",
    INTERNAL_ERROR: "Internal error",
}

STOP_REASON_END_TURN = "end_turn"
SESSION_UPDATE = "session/update"


class WireModel(BaseModel):
    """Base for wire payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class JsonRpcRequest(WireModel):
    """Inbound request. A missing ``method`` is reported as method-not-found."""

    jsonrpc: str = JSONRPC_VERSION
    id: Any = None
    method: str = ""
    params: Any = None


class JsonRpcError(WireModel):
    code: int
    message: str
    data: JsonValue = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


class JsonRpcResponse(WireModel):
    """Exactly one of ``result`` / ``error`` goes on the wire; ``id`` is always present."""

    jsonrpc: str = JSONRPC_VERSION
    id: Any = None
    result: Any = None
    error: JsonRpcError | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            out["error"] = self.error.to_wire()
        else:
            out["result"] = self.result.to_wire() if isinstance(self.result, WireModel) else self.result
        return out


class JsonRpcNotification(WireModel):
    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: Any = None

    def to_wire(self) -> dict[str, Any]:
        params = self.params.to_wire() if isinstance(self.params, WireModel) else self.params
        return {"jsonrpc": self.jsonrpc, "method": self.method, "params": params}


def response_ok(request_id: Any, result: Any) -> JsonRpcResponse:
    return JsonRpcResponse(id=request_id, result=result)


def response_error(request_id: Any, code: int, data: JsonValue = None, message: str | None = None) -> JsonRpcResponse:
    error = JsonRpcError(code=code, message=message or ERROR_MESSAGES.get(code, "Error"), data=data)
    return JsonRpcResponse(id=request_id, error=error)


def session_update(update: SessionNotification) -> JsonRpcNotification:
    return JsonRpcNotification(method=SESSION_UPDATE, params=update)


# ---------------------------------------------------------------------------
# Method params and results
# ---------------------------------------------------------------------------


class InitializeParams(WireModel):
    protocol_version: int = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    client_capabilities: dict[str, Any] = Field(default_factory=dict, alias="clientCapabilities")


class PromptCapabilities(WireModel):
    audio: bool = False
    embedded_context: bool = Field(default=False, alias="embeddedContext")
    image: bool = False


class AgentCapabilities(WireModel):
    load_session: bool = Field(default=True, alias="loadSession")
    prompt_capabilities: PromptCapabilities = Field(default_factory=PromptCapabilities, alias="promptCapabilities")


class InitializeResult(WireModel):
    protocol_version: int = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    agent_capabilities: AgentCapabilities = Field(default_factory=AgentCapabilities, alias="agentCapabilities")
    auth_methods: list[Any] = Field(default_factory=list, alias="authMethods")


class NewSessionParams(WireModel):
    cwd: str = ""
    mcp_servers: list[Any] = Field(default_factory=list, alias="mcpServers")


class NewSessionResult(WireModel):
    session_id: str = Field(alias="sessionId")


class LoadSessionParams(WireModel):
    session_id: str = Field(alias="sessionId")
    cwd: str = ""
    mcp_servers: list[Any] = Field(default_factory=list, alias="mcpServers")


class ContentBlock(WireModel):
    """A prompt content block: ``text`` or ``resource_link`` (others are ignored)."""

    type: str
    text: str = ""
    uri: str = ""
    name: str = ""
    mime_type: str = Field(default="", alias="mimeType")
    title: str = ""
    description: str = ""
    size: int | None = None


class PromptParams(WireModel):
    session_id: str = Field(alias="sessionId")
    prompt: list[ContentBlock] = Field(default_factory=list)


class PromptResult(WireModel):
    stop_reason: str = Field(default=STOP_REASON_END_TURN, alias="stopReason")


# ---------------------------------------------------------------------------
# session/update payloads
# ---------------------------------------------------------------------------


class TextContent(WireModel):
    type: Literal["text"] = "text"
    text: str


class AgentMessageChunk(WireModel):
    session_update: Literal["agent_message_chunk"] = Field(default="agent_message_chunk", alias="sessionUpdate")
    content: TextContent


class UserMessageChunk(WireModel):
    session_update: Literal["user_message_chunk"] = Field(default="user_message_chunk", alias="sessionUpdate")
    content: TextContent


class ToolCallInfo(WireModel):
    id: str
    name: str
    args: dict[str, JsonValue] = Field(default_factory=dict)


class ToolCallUpdate(WireModel):
    session_update: Literal["tool_call"] = Field(default="tool_call", alias="sessionUpdate")
    tool_call: ToolCallInfo = Field(alias="toolCall")


class ToolResultInfo(WireModel):
    tool_call_id: str = Field(alias="toolCallId")
    result: str


class ToolResultUpdate(WireModel):
    session_update: Literal["tool_result"] = Field(default="tool_result", alias="sessionUpdate")
    tool_result: ToolResultInfo = Field(alias="toolResult")


SessionUpdate = Annotated[
    Union[AgentMessageChunk, UserMessageChunk, ToolCallUpdate, ToolResultUpdate],
    Field(discriminator="session_update"),
]


class SessionNotification(WireModel):
    session_id: str = Field(alias="sessionId")
    update: SessionUpdate


def agent_message_chunk(session_id: str, text: str) -> SessionNotification:
    return SessionNotification(session_id=session_id, update=AgentMessageChunk(content=TextContent(text=text)))


def user_message_chunk(session_id: str, text: str) -> SessionNotification:
    return SessionNotification(session_id=session_id, update=UserMessageChunk(content=TextContent(text=text)))


def tool_call_update(session_id: str, call: ToolCall) -> SessionNotification:
    info = ToolCallInfo(id=call.id, name=call.name, args=call.args)
    return SessionNotification(session_id=session_id, update=ToolCallUpdate(tool_call=info))


def tool_result_update(session_id: str, tool_call_id: str, result: str) -> SessionNotification:
    info = ToolResultInfo(tool_call_id=tool_call_id, result=result)
    return SessionNotification(session_id=session_id, update=ToolResultUpdate(tool_result=info))
