"""NDJSON decoding for Ollama chat responses."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator

from pydantic import ValidationError

from islandchat.constants import ChatConstants
from islandchat.ollama.errors import server_error
from islandchat.ollama.models import ChatResponse, StreamFragment

logger = logging.getLogger(__name__)


async def decode_chat_stream(lines: AsyncIterable[str | bytes]) -> AsyncIterator[StreamFragment]:
    """
    Turn NDJSON lines from /api/chat into StreamFragments, in arrival order.

    Blank and unparsable lines are skipped. An unparsable line that still carries the
    completion marker ends decoding. A line with an in-band ``error`` raises
    OllamaServerError. Transport errors from ``lines`` propagate unchanged.
    """
    async for raw in lines:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        if not line.strip():
            continue

        try:
            chunk = ChatResponse.model_validate_json(line)
        except ValidationError as e:
            if ChatConstants.STREAM_DONE_MARKER in line.replace(" ", ""):
                logger.debug("Unparsable completion line, ending stream")
                return
            logger.debug("Skipping malformed stream line: %s", e.errors()[0]["msg"])
            continue

        if chunk.error:
            raise server_error(200, chunk.error)

        fragment = StreamFragment.from_message(chunk.message)
        if fragment is not None:
            yield fragment


def decode_chat_response(body: str | bytes) -> StreamFragment:
    """Extract the single fragment carried by a non-streaming /api/chat body."""
    chunk = ChatResponse.model_validate_json(body)
    if chunk.error:
        raise server_error(200, chunk.error)
    return StreamFragment.from_message(chunk.message) or StreamFragment()
