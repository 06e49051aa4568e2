"""Tests for the command-line entry point."""
from __future__ import annotations

import contextlib
import io
import logging
import os
import tempfile
import unittest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import main
from src.orchestrator.config import CompellConfig, Toolset
from src.orchestrator.models import Session
from src.orchestrator.providers import MockProvider


def _config() -> CompellConfig:
    return CompellConfig(
        toolsets=[Toolset(name="default", tools=["read_file"]), Toolset(name="dev", tools=["write_file"])]
    )


class TestParser(unittest.TestCase):
    def test_defaults(self) -> None:
        args = main.build_parser().parse_args([])
        self.assertEqual((args.mode, args.session, args.toolset, args.resume, args.tool_verbosity), ("", "", "", "", ""))
        self.assertFalse(args.acp)
        self.assertFalse(args.trace)
        self.assertEqual(args.prompt, [])

    def test_flags_and_initial_prompt(self) -> None:
        args = main.build_parser().parse_args(
            ["-m", "auto", "-s", "work", "-t", "dev", "--tool-verbosity", "all", "--acp", "--trace", "fix", "the", "bug"]
        )
        self.assertEqual(args.mode, "auto")
        self.assertEqual(args.session, "work")
        self.assertEqual(args.toolset, "dev")
        self.assertEqual(args.tool_verbosity, "all")
        self.assertTrue(args.acp)
        self.assertTrue(args.trace)
        self.assertEqual(" ".join(args.prompt), "fix the bug")

    def test_default_session_name(self) -> None:
        name = main.default_session_name(datetime(2024, 3, 5, 7, 8, 9))
        self.assertEqual(name, f"{os.path.basename(os.getcwd())}_2024-03-05_07-08-09")


class TestConfigureLogging(unittest.TestCase):
    def setUp(self) -> None:
        self.root = logging.getLogger()
        self._handlers = list(self.root.handlers)
        self._level = self.root.level
        self._tmp = tempfile.TemporaryDirectory()

    def tearDown(self) -> None:
        for handler in self.root.handlers:
            if handler not in self._handlers:
                handler.close()
        self.root.handlers = self._handlers
        self.root.setLevel(self._level)
        self._tmp.cleanup()

    def test_trace_writes_timestamped_debug_lines(self) -> None:
        path = os.path.join(self._tmp.name, "acp.trace")
        main.configure_logging(True, path)
        logging.getLogger("compell.test").debug("hello trace")
        for handler in self.root.handlers:
            handler.flush()
        with open(path, encoding="utf-8") as f:
            line = f.read().strip()
        self.assertRegex(line, r"^\[\d{2}:\d{2}:\d{2}\.\d{3}\] compell\.test: hello trace$")

    def test_without_trace_only_warnings(self) -> None:
        main.configure_logging(False)
        self.assertEqual(self.root.level, logging.WARNING)


class TestRun(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = MagicMock()
        self.store.new.side_effect = lambda name: Session(name=name)
        patches = [
            patch.object(main, "load_config", return_value=_config()),
            patch.object(main, "SessionStore", return_value=self.store),
            patch.object(main, "get_provider", return_value=MockProvider()),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    async def test_invalid_mode_exits_with_status_one(self) -> None:
        args = main.build_parser().parse_args(["-m", "sometimes"])
        with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(io.StringIO()) as err:
            self.assertEqual(await main.run(args), 1)
        self.assertIn("Invalid mode 'sometimes'", err.getvalue())
        self.store.save.assert_not_called()

    async def test_invalid_verbosity_exits_with_status_one(self) -> None:
        args = main.build_parser().parse_args(["--tool-verbosity", "loud"])
        with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(io.StringIO()) as err:
            self.assertEqual(await main.run(args), 1)
        self.assertIn("Invalid tool verbosity 'loud'", err.getvalue())

    async def test_resume_applies_stored_settings(self) -> None:
        self.store.load.return_value = Session(name="old", mode="auto", toolset="dev", tool_verbosity="all")
        terminal = MagicMock()
        terminal.return_value.run = AsyncMock()
        args = main.build_parser().parse_args(["-r", "old", "hello", "there"])
        with patch.object(main, "Terminal", terminal), contextlib.redirect_stdout(io.StringIO()) as out:
            self.assertEqual(await main.run(args), 0)

        saved = self.store.save.call_args.args[0]
        self.assertEqual((saved.name, saved.mode, saved.toolset, saved.tool_verbosity, saved.acp), ("old", "auto", "dev", "all", False))
        agent = terminal.call_args.args[0]
        self.assertEqual([t.name for t in agent.tools], ["write_file"])
        terminal.return_value.run.assert_awaited_once_with("hello there")
        self.assertIn("Resuming session: old", out.getvalue())

    async def test_flags_override_resumed_settings(self) -> None:
        self.store.load.return_value = Session(name="old", mode="auto", tool_verbosity="all")
        terminal = MagicMock()
        terminal.return_value.run = AsyncMock()
        args = main.build_parser().parse_args(["-r", "old", "-m", "prompt", "--tool-verbosity", "none"])
        with patch.object(main, "Terminal", terminal), contextlib.redirect_stdout(io.StringIO()):
            await main.run(args)
        saved = self.store.save.call_args.args[0]
        self.assertEqual((saved.mode, saved.tool_verbosity), ("prompt", "none"))

    async def test_acp_mode_keeps_stdout_for_the_protocol(self) -> None:
        server = MagicMock()
        server.return_value.serve = AsyncMock()
        stdin = io.TextIOWrapper(io.BytesIO())
        stdout = io.TextIOWrapper(io.BytesIO())
        args = main.build_parser().parse_args(["--acp", "-s", "editor"])
        with patch.object(main, "ProtocolServer", server), patch("sys.stdin", stdin), \
                contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(io.StringIO()):
            self.assertEqual(await main.run(args), 0)
        stdout.flush()

        self.assertEqual(stdout.buffer.getvalue(), b"")
        self.assertIs(server.call_args.args[2], stdin.buffer)
        self.assertIs(server.call_args.args[3], stdout.buffer)
        server.return_value.serve.assert_awaited_once()
        self.assertTrue(self.store.save.call_args.args[0].acp)


if __name__ == "__main__":
    unittest.main()
