"""Unit tests for the interactive terminal front-end."""
from __future__ import annotations

import io
import unittest
from typing import Any
from unittest.mock import MagicMock

from src.orchestrator.loop import DENIED_RESULT, Agent
from src.orchestrator.models import Message, Session, ToolCall
from src.orchestrator.providers import MockProvider
from src.orchestrator.terminal import Terminal
from src.orchestrator.tools import BaseTool


class EchoTool(BaseTool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echoes its text argument."

    async def execute(self, args: dict[str, Any]) -> str:
        return f"echo: {args.get('text', '')}"


def _tool_round(text: str = "x") -> list[Message]:
    call = ToolCall(id="c1", name="echo", args={"text": text})
    return [Message.assistant("", [call]), Message.assistant("done")]


class TestTerminal(unittest.IsolatedAsyncioTestCase):
    def make_terminal(self, replies: list[Any], stdin_text: str, **session_kwargs: Any) -> tuple[Terminal, io.StringIO]:
        session = Session(name="term", **session_kwargs)
        agent = Agent(MockProvider(replies), [EchoTool()], MagicMock())
        stdout = io.StringIO()
        return Terminal(agent, session, io.StringIO(stdin_text), stdout), stdout

    async def test_prompt_and_answer(self) -> None:
        terminal, stdout = self.make_terminal([Message.assistant("hi there")], "hello\n/quit\n", mode="auto")
        await terminal.run()
        out = stdout.getvalue()
        self.assertTrue(out.startswith("You: "))
        self.assertIn("Compell: hi there\n", out)
        self.assertEqual([m.content for m in terminal.session.messages], ["hello", "hi there"])

    async def test_exit_commands_and_blank_lines(self) -> None:
        terminal, _ = self.make_terminal([], "\n   \n/exit\nnever sent\n", mode="auto")
        await terminal.run()
        self.assertEqual(terminal.session.messages, [])

    async def test_eof_ends_the_session(self) -> None:
        terminal, stdout = self.make_terminal([], "", mode="auto")
        await terminal.run()
        self.assertEqual(stdout.getvalue(), "You: ")

    async def test_initial_prompt_runs_first(self) -> None:
        terminal, stdout = self.make_terminal([Message.assistant("first")], "", mode="auto")
        await terminal.run("start here")
        self.assertEqual(terminal.session.messages[0].content, "start here")
        self.assertTrue(stdout.getvalue().startswith("Compell: first\n"))

    async def test_tool_verbosity_all(self) -> None:
        terminal, stdout = self.make_terminal(_tool_round(), "go\n", mode="auto", tool_verbosity="all")
        await terminal.run()
        out = stdout.getvalue()
        self.assertIn("Compell wants to call tool `echo` with args: {'text': 'x'}", out)
        self.assertIn("Tool `echo` output: echo: x", out)

    async def test_tool_verbosity_info(self) -> None:
        terminal, stdout = self.make_terminal(_tool_round(), "go\n", mode="auto", tool_verbosity="info")
        await terminal.run()
        out = stdout.getvalue()
        self.assertIn("Compell wants to call tool `echo`\n", out)
        self.assertNotIn("output:", out)

    async def test_tool_verbosity_none(self) -> None:
        terminal, stdout = self.make_terminal(_tool_round(), "go\n", mode="auto")
        await terminal.run()
        self.assertNotIn("echo", stdout.getvalue())

    async def test_prompt_mode_confirmation(self) -> None:
        terminal, stdout = self.make_terminal(_tool_round(), "go\ny\n", mode="prompt")
        await terminal.run()
        self.assertIn("Do you want to allow this? (y/n): ", stdout.getvalue())
        self.assertEqual(terminal.session.messages[2].content, "echo: x")

    async def test_prompt_mode_refusal(self) -> None:
        terminal, _ = self.make_terminal(_tool_round(), "go\nn\n", mode="prompt")
        await terminal.run()
        self.assertEqual(terminal.session.messages[2].content, DENIED_RESULT)

    async def test_llm_error_is_printed_and_session_continues(self) -> None:
        terminal, stdout = self.make_terminal(
            [RuntimeError("backend down"), Message.assistant("back")], "one\ntwo\n", mode="auto"
        )
        await terminal.run()
        out = stdout.getvalue()
        self.assertIn("Error: LLM chat failed: backend down", out)
        self.assertIn("Compell: back", out)


if __name__ == "__main__":
    unittest.main()
