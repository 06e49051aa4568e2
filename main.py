"""Command-line entry point: interactive terminal or ACP server over stdio."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from typing import get_args

from main_config import TRACE_FILE_PATH
from src.acp_server import ProtocolServer, TransportError
from src.orchestrator.config import load_config
from src.orchestrator.errors import CompellError
from src.orchestrator.llm import get_provider
from src.orchestrator.loop import Agent
from src.orchestrator.models import Mode, ToolVerbosity
from src.orchestrator.session_store import SessionStore
from src.orchestrator.terminal import Terminal


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="compell", description="Coding assistant agent")
    parser.add_argument("-m", dest="mode", default="", help="Execution mode: 'auto' or 'prompt'")
    parser.add_argument("-s", dest="session", default="", help="Session name to create or use")
    parser.add_argument("-t", dest="toolset", default="", help="Toolset to use (defaults to 'default')")
    parser.add_argument("-r", dest="resume", default="", help="Resume a session by name")
    parser.add_argument(
        "--tool-verbosity",
        dest="tool_verbosity",
        default="",
        help="Tool verbosity level: 'none', 'info', or 'all'",
    )
    parser.add_argument("--acp", action="store_true", help="Speak the Agent Client Protocol on stdio")
    parser.add_argument("--trace", action="store_true", help=f"Write a debug trace to {os.path.basename(TRACE_FILE_PATH)}")
    parser.add_argument("prompt", nargs="*", help="Initial prompt")
    return parser


def default_session_name(now: datetime | None = None) -> str:
    dir_name = os.path.basename(os.getcwd()) or "compell"
    return f"{dir_name}_{(now or datetime.now()).strftime('%Y-%m-%d_%H-%M-%S')}"


def configure_logging(trace: bool, trace_path: str = TRACE_FILE_PATH) -> None:
    """Warnings go to stderr; ``trace`` adds a debug log file. Never stdout."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if trace else logging.WARNING)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root.addHandler(console)

    if trace:
        trace_handler = logging.FileHandler(trace_path, encoding="utf-8")
        trace_handler.setLevel(logging.DEBUG)
        trace_handler.setFormatter(
            logging.Formatter("[%(asctime)s.%(msecs)03d] %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        root.addHandler(trace_handler)


async def run(args: argparse.Namespace) -> int:
    # In ACP mode stdout belongs to the protocol.
    info = sys.stderr if args.acp else sys.stdout

    try:
        config = load_config()
    except CompellError as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    store = SessionStore()
    if args.resume:
        name = args.resume
        try:
            session = store.load(name)
        except CompellError as e:
            print(f"Error resuming session '{name}': {e}", file=sys.stderr)
            return 1
        print(f"Resuming session: {name}", file=info)
    else:
        name = args.session or default_session_name()
        session = store.new(name)
        print(f"Starting new session: {name}", file=info)

    mode = args.mode or session.mode
    toolset = args.toolset or session.toolset
    tool_verbosity = args.tool_verbosity or session.tool_verbosity

    if mode not in get_args(Mode):
        print(f"Invalid mode '{mode}'. Must be 'auto' or 'prompt'.", file=sys.stderr)
        return 1
    if tool_verbosity not in get_args(ToolVerbosity):
        print(f"Invalid tool verbosity '{tool_verbosity}'. Must be 'none', 'info', or 'all'.", file=sys.stderr)
        return 1

    session.mode = mode
    session.toolset = toolset
    session.tool_verbosity = tool_verbosity
    session.acp = args.acp
    try:
        store.save(session)
    except OSError as e:
        print(f"Error saving session '{name}': {e}", file=sys.stderr)
        return 1

    provider = get_provider(config.llm, config.model)
    try:
        agent = await Agent.from_config(
            config,
            provider,
            store,
            mode=mode,
            toolset=toolset,
            tool_verbosity=tool_verbosity,
            acp=args.acp,
        )
    except CompellError as e:
        print(f"Error initializing agent: {e}", file=sys.stderr)
        return 1

    if args.acp:
        print("Starting Compell in ACP mode...", file=sys.stderr)
        server = ProtocolServer(agent, store, sys.stdin.buffer, sys.stdout.buffer)
        try:
            await server.serve()
        except TransportError as e:
            print(f"ACP mode failed: {e}", file=sys.stderr)
            return 1
        return 0

    print("Compell is ready. Type your prompt.")
    await Terminal(agent, session).run(" ".join(args.prompt))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.trace)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
