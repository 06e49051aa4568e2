"""WebSocket bridge: relay a browser socket to an agent subprocess's stdio."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bridge"])

# Protocol frames can carry inlined file contents, well past asyncio's 64 KiB default.
STREAM_LIMIT = 4 * 1024 * 1024


async def _pump(stream: asyncio.StreamReader, kind: str, websocket: WebSocket) -> None:
    """Forward each line of ``stream`` as ``{"type": kind, "data": line}``."""
    try:
        async for raw in stream:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            await websocket.send_json({"type": kind, "data": line})
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("stopped forwarding %s: %s", kind, e)
    except ValueError as e:
        logger.warning("%s line too long to forward: %s", kind, e)


@router.websocket("/ws")
async def bridge(websocket: WebSocket) -> None:
    """Spawn the agent command for this connection and relay its stdio."""
    command: list[str] = websocket.app.state.agent_command
    await websocket.accept()
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
        )
    except OSError as e:
        logger.error("failed to start agent %s: %s", command, e)
        await websocket.close(code=1011)
        return

    logger.info("started agent pid %s: %s", proc.pid, " ".join(command))
    pumps = [
        asyncio.create_task(_pump(proc.stdout, "stdout", websocket)),
        asyncio.create_task(_pump(proc.stderr, "stderr", websocket)),
    ]
    try:
        while True:
            message = await websocket.receive_text()
            proc.stdin.write(message.encode("utf-8") + b"\n")
            await proc.stdin.drain()
    except WebSocketDisconnect:
        logger.info("client disconnected from agent pid %s", proc.pid)
    except (BrokenPipeError, ConnectionResetError) as e:
        logger.warning("agent pid %s stdin closed: %s", proc.pid, e)
    finally:
        for task in pumps:
            task.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)
        if proc.returncode is None:
            proc.terminate()
            await proc.wait()
