"""Interactive terminal front-end for the agent."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TextIO

from .errors import CompellError
from .loop import Agent, TurnObserver
from .models import Session, ToolCall

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/quit", "/exit")


class TerminalObserver(TurnObserver):
    """Prints turn events; asks for confirmation before tools in prompt mode."""

    def __init__(self, session: Session, stdin: TextIO, stdout: TextIO) -> None:
        self.session = session
        self.stdin = stdin
        self.stdout = stdout

    def write(self, text: str, end: str = "\n") -> None:
        self.stdout.write(text + end)
        self.stdout.flush()

    async def on_assistant_message(self, text: str) -> None:
        self.write(f"Compell: {text}")

    async def on_tool_call(self, call: ToolCall) -> None:
        if self.session.tool_verbosity == "all":
            self.write(f"Compell wants to call tool `{call.name}` with args: {call.args}")
        elif self.session.tool_verbosity == "info":
            self.write(f"Compell wants to call tool `{call.name}`")

    async def on_tool_result(self, call: ToolCall, result: str) -> None:
        if self.session.tool_verbosity == "all":
            self.write(f"Tool `{call.name}` output: {result}")

    async def should_execute_tool(self, call: ToolCall) -> bool:
        if self.session.mode != "prompt":
            return True
        self.write("Do you want to allow this? (y/n): ", end="")
        answer = await asyncio.to_thread(self.stdin.readline)
        return answer.strip().lower() == "y"

    async def on_warning(self, text: str) -> None:
        self.write(f"Warning: {text}")


class Terminal:
    """Read–eval loop over a text stream; one line is one user turn."""

    def __init__(
        self,
        agent: Agent,
        session: Session,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.agent = agent
        self.session = session
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.observer = TerminalObserver(session, self.stdin, self.stdout)

    async def process_turn(self, user_input: str) -> None:
        await self.agent.process_user_input(self.session, user_input, self.observer)

    async def run(self, initial_prompt: str = "") -> None:
        if initial_prompt:
            await self.process_turn(initial_prompt)

        while True:
            self.observer.write("You: ", end="")
            line = await asyncio.to_thread(self.stdin.readline)
            if not line:
                break
            user_input = line.strip()
            if not user_input:
                continue
            if user_input in EXIT_COMMANDS:
                break
            try:
                await self.process_turn(user_input)
            except CompellError as e:
                logger.error("turn failed: %s", e)
                self.observer.write(f"Error: {e}")
