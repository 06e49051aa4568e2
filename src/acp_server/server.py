"""Newline-delimited JSON-RPC server that exposes the agent to editors."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import threading
import time
from typing import Awaitable, BinaryIO, Callable

from pydantic import ValidationError

from src.orchestrator.errors import CompellError, SessionNotFoundError
from src.orchestrator.loop import Agent, TurnObserver
from src.orchestrator.models import Session, ToolCall
from src.orchestrator.session_store import SessionStore

from .content import extract_user_text
from .wire import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    InitializeParams,
    InitializeResult,
    JsonRpcRequest,
    JsonRpcResponse,
    LoadSessionParams,
    NewSessionParams,
    NewSessionResult,
    PromptParams,
    PromptResult,
    SessionNotification,
    WireModel,
    agent_message_chunk,
    response_error,
    response_ok,
    session_update,
    tool_call_update,
    tool_result_update,
    user_message_chunk,
)

logger = logging.getLogger(__name__)

Handler = Callable[[JsonRpcRequest], Awaitable[JsonRpcResponse]]


class TransportError(CompellError):
    """The input or output stream failed; the server cannot continue."""


class SessionRegistry:
    """Session id → live Session. Shared across dispatch calls; never evicts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def put(self, session_id: str, session: Session) -> None:
        with self._lock:
            self._sessions[session_id] = session

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class ProtocolObserver(TurnObserver):
    """Forwards turn events as session/update notifications.

    Tool calls are always approved: the protocol has no round trip for asking
    the client, so ``prompt`` mode is not enforced here.
    """

    def __init__(self, server: ProtocolServer, session_id: str) -> None:
        self.server = server
        self.session_id = session_id

    async def on_assistant_message(self, text: str) -> None:
        self.server.send_update(agent_message_chunk(self.session_id, text))

    async def on_tool_call(self, call: ToolCall) -> None:
        logger.debug("session %s: tool call %s with args %s", self.session_id, call.name, call.args)
        self.server.send_update(tool_call_update(self.session_id, call))

    async def on_tool_result(self, call: ToolCall, result: str) -> None:
        self.server.send_update(tool_result_update(self.session_id, call.id, result))

    async def should_execute_tool(self, call: ToolCall) -> bool:
        return True

    async def on_warning(self, text: str) -> None:
        logger.warning("session %s: %s", self.session_id, text)


def _short_cause(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        errors = exc.errors()
        if errors:
            loc = ".".join(str(part) for part in errors[0].get("loc", ()))
            msg = errors[0].get("msg", "")
            return f"{loc}: {msg}" if loc else msg
    return str(exc)


class ProtocolServer:
    """
    Serve one client over a pair of binary line streams.

    Frames are processed one at a time: a ``session/prompt`` runs the whole
    agent turn before the next line is read. Every outbound frame is a single
    JSON line written and flushed under the writer lock.
    """

    def __init__(
        self,
        agent: Agent,
        store: SessionStore,
        input: BinaryIO,
        output: BinaryIO,
        registry: SessionRegistry | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.agent = agent
        self.store = store
        self.input = input
        self.output = output
        self.registry = registry if registry is not None else SessionRegistry()
        self.clock = clock or time.time_ns
        self._sequence = itertools.count(1)
        self._seq_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._handlers: dict[str, Handler] = {
            "initialize": self.handle_initialize,
            "session/new": self.handle_new_session,
            "session/load": self.handle_load_session,
            "session/prompt": self.handle_prompt,
        }

    # -- output ------------------------------------------------------------

    def write_frame(self, frame: WireModel) -> None:
        data = json.dumps(frame.to_wire()).encode("utf-8") + b"\n"
        logger.debug("-> %s", data[:-1].decode("utf-8"))
        with self._write_lock:
            try:
                self.output.write(data)
                self.output.flush()
            except (OSError, ValueError) as e:
                raise TransportError(f"failed to write frame: {e}") from e

    def send_update(self, update: SessionNotification) -> None:
        self.write_frame(session_update(update))

    # -- input -------------------------------------------------------------

    async def serve(self) -> None:
        """Read frames until EOF. Raises TransportError if the input stream fails."""
        logger.debug("protocol server started")
        while True:
            try:
                line = await asyncio.to_thread(self.input.readline)
            except (OSError, ValueError) as e:
                raise TransportError(f"failed to read from client: {e}") from e
            if not line:
                logger.debug("input closed, shutting down")
                return
            await self.handle_line(line)

    async def handle_line(self, line: bytes) -> None:
        logger.debug("<- %r", line)
        try:
            text = line.decode("utf-8")
        except UnicodeDecodeError as e:
            self.write_frame(response_error(None, PARSE_ERROR, str(e)))
            return
        if not text.strip():
            return
        try:
            request = JsonRpcRequest.model_validate_json(text)
        except ValidationError as e:
            logger.debug("unparseable frame: %s", e)
            self.write_frame(response_error(None, PARSE_ERROR, _short_cause(e)))
            return
        self.write_frame(await self.dispatch(request))

    async def dispatch(self, request: JsonRpcRequest) -> JsonRpcResponse:
        handler = self._handlers.get(request.method)
        if handler is None:
            logger.debug("unknown method %r", request.method)
            return response_error(request.id, METHOD_NOT_FOUND, f"unknown method: {request.method}")
        logger.debug("dispatching %s (id=%r)", request.method, request.id)
        try:
            return await handler(request)
        except ValidationError as e:
            return response_error(request.id, INVALID_PARAMS, _short_cause(e))

    # -- sessions ----------------------------------------------------------

    def next_session_id(self) -> str:
        with self._seq_lock:
            seq = next(self._sequence)
        return f"sess_{self.clock()}_{seq}"

    def replay(self, session_id: str, session: Session) -> None:
        """Emit the stored history as session/update notifications, in order."""
        for message in session.messages:
            if message.role == "user":
                self.send_update(user_message_chunk(session_id, message.content))
            elif message.role == "assistant":
                if message.content:
                    self.send_update(agent_message_chunk(session_id, message.content))
                for call in message.tool_calls:
                    self.send_update(tool_call_update(session_id, call))
            elif message.role == "tool":
                self.send_update(tool_result_update(session_id, message.tool_call_id or "", message.content))

    # -- handlers ----------------------------------------------------------

    async def handle_initialize(self, request: JsonRpcRequest) -> JsonRpcResponse:
        params = InitializeParams.model_validate(request.params or {})
        logger.debug("client protocol version %d", params.protocol_version)
        return response_ok(request.id, InitializeResult())

    async def handle_new_session(self, request: JsonRpcRequest) -> JsonRpcResponse:
        NewSessionParams.model_validate(request.params or {})
        session_id = self.next_session_id()
        session = self.agent.seed_session(self.store.new(session_id))
        self.registry.put(session_id, session)
        logger.info("created session %s", session_id)
        return response_ok(request.id, NewSessionResult(session_id=session_id))

    async def handle_load_session(self, request: JsonRpcRequest) -> JsonRpcResponse:
        params = LoadSessionParams.model_validate(request.params or {})
        try:
            session = self.store.load(params.session_id)
        except SessionNotFoundError as e:
            return response_error(request.id, INVALID_PARAMS, str(e))
        except CompellError as e:
            return response_error(request.id, INTERNAL_ERROR, str(e))
        self.registry.put(params.session_id, session)
        logger.info("loaded session %s, replaying %d messages", params.session_id, len(session.messages))
        self.replay(params.session_id, session)
        return response_ok(request.id, None)

    async def handle_prompt(self, request: JsonRpcRequest) -> JsonRpcResponse:
        params = PromptParams.model_validate(request.params or {})
        session = self.registry.get(params.session_id)
        if session is None:
            return response_error(request.id, INVALID_PARAMS, f"session not found: {params.session_id}")

        user_text = extract_user_text(params.prompt)
        logger.debug("session %s: prompt text %r", params.session_id, user_text)
        observer = ProtocolObserver(self, params.session_id)
        try:
            await self.agent.process_user_input(session, user_text, observer)
        except TransportError:
            raise
        except Exception as e:
            logger.error("session %s: turn failed: %s", params.session_id, e)
            return response_error(request.id, INTERNAL_ERROR, f"error processing user input: {e}")
        return response_ok(request.id, PromptResult())
