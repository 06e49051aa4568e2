"""Run the WebSocket bridge in front of an agent command.

Usage: python ws_bridge.py <command> [args...]   e.g. python ws_bridge.py python main.py --acp
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI

from src.routers import bridge_router

BRIDGE_HOST = "0.0.0.0"
BRIDGE_PORT = 8080


def create_app(agent_command: list[str]) -> FastAPI:
    app = FastAPI(title="Compell WebSocket Bridge", version="0.1.0")
    app.state.agent_command = list(agent_command)
    app.include_router(bridge_router)
    return app


def main(argv: list[str] | None = None) -> int:
    command = list(sys.argv[1:] if argv is None else argv)
    if not command:
        print("usage: ws_bridge.py <command> [args...]", file=sys.stderr)
        return 1
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print(f"WebSocket server running on ws://localhost:{BRIDGE_PORT}/ws")
    uvicorn.run(create_app(command), host=BRIDGE_HOST, port=BRIDGE_PORT)
    return 0


if __name__ == "__main__":
    sys.exit(main())
