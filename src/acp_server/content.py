"""Turn prompt content blocks into the user text fed to the agent loop."""

from __future__ import annotations

import logging
from typing import Iterable
from urllib.parse import unquote, urlparse

from src.orchestrator.config import MAX_RESOURCE_CONTENT_SIZE

from .wire import ContentBlock

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"
TRUNCATION_MARKER = "\n\n[... truncated to 50KB ...]"


def read_file_uri(uri: str, limit: int = -1) -> str:
    """Read up to ``limit`` characters of a ``file://`` URI. Raises OSError or ValueError."""
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise ValueError(f"unsupported URI scheme: {parsed.scheme}")
    with open(unquote(parsed.path), encoding="utf-8", errors="replace") as f:
        return f.read(limit)


def describe_resource(block: ContentBlock) -> str:
    text = f"=== Resource: {block.name} ===\n"
    if block.title:
        text += f"Title: {block.title}\n"
    if block.description:
        text += f"Description: {block.description}\n"
    text += f"URI: {block.uri}\n"
    if block.mime_type:
        text += f"Type: {block.mime_type}\n"
    if block.size is not None:
        text += f"Size: {block.size} bytes\n"

    if block.uri.startswith(FILE_SCHEME):
        try:
            contents = read_file_uri(block.uri, MAX_RESOURCE_CONTENT_SIZE + 1)
        except (OSError, ValueError) as e:
            logger.debug("could not read resource %s: %s", block.uri, e)
            text += f"\n[Error reading file: {e}]\n"
        else:
            if len(contents) > MAX_RESOURCE_CONTENT_SIZE:
                contents = contents[:MAX_RESOURCE_CONTENT_SIZE] + TRUNCATION_MARKER
            text += f"\n--- File Contents ---\n{contents}\n--- End of File ---\n"
    else:
        text += "\n[External resource - content not available]\n"

    return text + "=== End Resource ===\n"


def extract_user_text(blocks: Iterable[ContentBlock]) -> str:
    """
    Join prompt blocks into one user message.

    Text blocks are kept verbatim unless blank; ``resource_link`` blocks become
    a description (with inline contents for local files). Other block types
    are skipped.
    """
    parts: list[str] = []
    for block in blocks:
        if block.type == "text":
            if block.text.strip():
                parts.append(block.text)
        elif block.type == "resource_link":
            parts.append(describe_resource(block))
        else:
            logger.debug("skipping unsupported content block type %s", block.type)
    return "\n".join(parts)
