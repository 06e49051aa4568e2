"""Unit tests for the agent orchestration loop (mocked LLM, in-memory tools)."""
from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

from src.orchestrator.config import CompellConfig, Toolset
from src.orchestrator.errors import ConfigError, LLMError, ToolError
from src.orchestrator.loop import DENIED_RESULT, Agent, TurnObserver
from src.orchestrator.models import Message, Session, ToolCall
from src.orchestrator.providers import MockProvider
from src.orchestrator.session_store import SessionStore
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


class FailingTool(BaseTool):
    @property
    def name(self) -> str:
        return "boom"

    @property
    def description(self) -> str:
        return "Always fails."

    async def execute(self, args: dict[str, Any]) -> str:
        raise ToolError("it broke")


class RecordingObserver(TurnObserver):
    def __init__(self, approve: bool = True) -> None:
        self.approve = approve
        self.events: list[tuple[str, Any]] = []

    async def on_assistant_message(self, text: str) -> None:
        self.events.append(("assistant", text))

    async def on_tool_call(self, call: ToolCall) -> None:
        self.events.append(("tool_call", call.id))

    async def on_tool_result(self, call: ToolCall, result: str) -> None:
        self.events.append(("tool_result", result))

    async def should_execute_tool(self, call: ToolCall) -> bool:
        self.events.append(("confirm", call.name))
        return self.approve

    async def on_warning(self, text: str) -> None:
        self.events.append(("warning", text))


def _calls(*specs: tuple[str, str, dict[str, Any]]) -> list[ToolCall]:
    return [ToolCall(id=cid, name=name, args=args) for cid, name, args in specs]


class LoopTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = SessionStore(Path(self._tmp.name))
        self.session = Session(name="loop", mode="auto")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def make_agent(self, provider: MockProvider, tools: list[BaseTool] | None = None) -> Agent:
        return Agent(provider, tools if tools is not None else [EchoTool(), FailingTool()], self.store)


class TestTextOnlyTurn(LoopTestCase):
    async def test_plain_answer(self) -> None:
        agent = self.make_agent(MockProvider([Message.assistant("4")]))
        observer = RecordingObserver()
        await agent.process_user_input(self.session, "2+2?", observer)

        self.assertEqual([(m.role, m.content) for m in self.session.messages], [("user", "2+2?"), ("assistant", "4")])
        self.assertEqual(self.session.messages[-1].tool_calls, [])
        self.assertEqual(observer.events, [("assistant", "4")])

    async def test_turn_is_persisted(self) -> None:
        agent = self.make_agent(MockProvider([Message.assistant("done")]))
        await agent.process_user_input(self.session, "hi")
        self.assertEqual(self.store.load("loop").messages, self.session.messages)

    async def test_provider_sees_tools_and_full_history(self) -> None:
        provider = MockProvider([Message.assistant("ok")])
        agent = self.make_agent(provider)
        self.session.add_message(Message.user("earlier"))
        self.session.add_message(Message.assistant("reply"))
        await agent.process_user_input(self.session, "now")

        messages, tools = provider.calls[0]
        self.assertEqual([m.content for m in messages], ["earlier", "reply", "now"])
        self.assertEqual([t.name for t in tools], ["echo", "boom"])


class TestToolRounds(LoopTestCase):
    async def test_each_call_gets_one_tool_message_in_order(self) -> None:
        calls = _calls(("c1", "echo", {"text": "a"}), ("c2", "echo", {"text": "b"}), ("c3", "echo", {"text": "c"}))
        provider = MockProvider([Message.assistant("", calls), Message.assistant("all done")])
        await self.make_agent(provider).process_user_input(self.session, "go")

        roles = [m.role for m in self.session.messages]
        self.assertEqual(roles, ["user", "assistant", "tool", "tool", "tool", "assistant"])
        tool_msgs = self.session.messages[2:5]
        self.assertEqual([m.tool_call_id for m in tool_msgs], ["c1", "c2", "c3"])
        self.assertEqual([m.content for m in tool_msgs], ["echo: a", "echo: b", "echo: c"])
        self.assertEqual(self.session.messages[-1].content, "all done")

    async def test_multiple_rounds(self) -> None:
        provider = MockProvider(
            [
                Message.assistant("", _calls(("c1", "echo", {"text": "1"}))),
                Message.assistant("thinking", _calls(("c2", "echo", {"text": "2"}))),
                Message.assistant("finished"),
            ]
        )
        observer = RecordingObserver()
        await self.make_agent(provider).process_user_input(self.session, "go", observer)

        self.assertEqual(len(provider.calls), 3)
        self.assertEqual(
            observer.events,
            [
                ("tool_call", "c1"),
                ("tool_result", "echo: 1"),
                ("assistant", "thinking"),
                ("tool_call", "c2"),
                ("tool_result", "echo: 2"),
                ("assistant", "finished"),
            ],
        )

    async def test_failing_tool_becomes_error_content(self) -> None:
        provider = MockProvider([Message.assistant("", _calls(("c1", "boom", {}))), Message.assistant("sorry")])
        await self.make_agent(provider).process_user_input(self.session, "go")
        tool_msg = self.session.messages[2]
        self.assertEqual(tool_msg.role, "tool")
        self.assertIn("Error", tool_msg.content)
        self.assertIn("it broke", tool_msg.content)

    async def test_missing_tool_becomes_error_content(self) -> None:
        provider = MockProvider([Message.assistant("", _calls(("c1", "nope", {}))), Message.assistant("sorry")])
        await self.make_agent(provider).process_user_input(self.session, "go")
        tool_msg = self.session.messages[2]
        self.assertEqual(tool_msg.tool_call_id, "c1")
        self.assertIn("Error", tool_msg.content)
        self.assertIn("not found", tool_msg.content)

    async def test_auto_mode_never_asks(self) -> None:
        provider = MockProvider([Message.assistant("", _calls(("c1", "echo", {}))), Message.assistant("ok")])
        observer = RecordingObserver(approve=False)
        await self.make_agent(provider).process_user_input(self.session, "go", observer)
        self.assertNotIn(("confirm", "echo"), observer.events)
        self.assertEqual(self.session.messages[2].content, "echo: ")

    async def test_prompt_mode_denial(self) -> None:
        self.session.mode = "prompt"
        provider = MockProvider([Message.assistant("", _calls(("c1", "echo", {"text": "x"}))), Message.assistant("ok")])
        observer = RecordingObserver(approve=False)
        await self.make_agent(provider).process_user_input(self.session, "go", observer)
        self.assertIn(("confirm", "echo"), observer.events)
        self.assertEqual(self.session.messages[2].content, DENIED_RESULT)

    async def test_prompt_mode_approval(self) -> None:
        self.session.mode = "prompt"
        provider = MockProvider([Message.assistant("", _calls(("c1", "echo", {"text": "x"}))), Message.assistant("ok")])
        await self.make_agent(provider).process_user_input(self.session, "go", RecordingObserver(approve=True))
        self.assertEqual(self.session.messages[2].content, "echo: x")


class TestFailures(LoopTestCase):
    async def test_llm_failure_raises_and_keeps_user_message(self) -> None:
        provider = MockProvider([RuntimeError("backend down")])
        with self.assertRaises(LLMError):
            await self.make_agent(provider).process_user_input(self.session, "hello")
        self.assertEqual([m.role for m in self.session.messages], ["user"])
        self.assertEqual(self.store.load("loop").messages[0].content, "hello")

    async def test_llm_failure_after_a_round_keeps_the_round(self) -> None:
        provider = MockProvider([Message.assistant("", _calls(("c1", "echo", {}))), RuntimeError("timeout")])
        with self.assertRaises(LLMError):
            await self.make_agent(provider).process_user_input(self.session, "go")
        self.assertEqual([m.role for m in self.session.messages], ["user", "assistant", "tool"])

    async def test_non_assistant_reply_is_an_llm_error(self) -> None:
        provider = MockProvider([Message.user("confused")])
        with self.assertRaises(LLMError):
            await self.make_agent(provider).process_user_input(self.session, "go")

    async def test_save_failure_is_a_warning(self) -> None:
        store = MagicMock()
        store.save.side_effect = OSError("disk full")
        agent = Agent(MockProvider([Message.assistant("ok")]), [], store)
        observer = RecordingObserver()
        await agent.process_user_input(self.session, "hi", observer)
        self.assertEqual(observer.events[-1][0], "warning")
        self.assertIn("disk full", observer.events[-1][1])


class TestFromConfig(unittest.IsolatedAsyncioTestCase):
    async def test_agent_gets_the_toolset_tools(self) -> None:
        config = CompellConfig(toolsets=[Toolset(name="default", tools=["read_file", "read_dir"])])
        agent = await Agent.from_config(config, MockProvider(), MagicMock(), mode="auto", toolset="default")
        self.assertEqual([t.name for t in agent.tools], ["read_file", "read_dir"])
        self.assertEqual(agent.mode, "auto")

    async def test_unknown_tool_in_toolset(self) -> None:
        config = CompellConfig(toolsets=[Toolset(name="default", tools=["teleport"])])
        with self.assertRaises(ConfigError):
            await Agent.from_config(config, MockProvider(), MagicMock())

    def test_seed_session_copies_settings(self) -> None:
        agent = Agent(MockProvider(), [], MagicMock(), mode="auto", toolset="dev", tool_verbosity="all", acp=True)
        session = agent.seed_session(Session(name="s"))
        self.assertEqual((session.mode, session.toolset, session.tool_verbosity, session.acp), ("auto", "dev", "all", True))


if __name__ == "__main__":
    unittest.main()
