"""Ollama API client for chat completions."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator

import httpx
import ollama

from islandchat.constants import ChatConstants
from islandchat.ollama.errors import server_error
from islandchat.ollama.models import ChatRequest, StreamFragment, VersionResponse
from islandchat.ollama.stream import decode_chat_response, decode_chat_stream

logger = logging.getLogger(__name__)


class OllamaClient:
    """Client for one Ollama server."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        *,
        connect_timeout: float = ChatConstants.CONNECT_TIMEOUT,
        read_timeout: float = ChatConstants.READ_TIMEOUT,
    ):
        """
        Initialize Ollama client.

        Args:
            api_url: Base URL for the Ollama API (e.g., http://localhost:11434)
            api_key: Optional key, sent as a bearer token on every request
            connect_timeout: Seconds allowed to establish a connection
            read_timeout: Seconds allowed between bytes of a response
        """
        self.api_url = api_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        timeout = httpx.Timeout(read_timeout, connect=connect_timeout)

        # Use httpx directly for chat: the ollama SDK parses every line into its own
        # types, which hides malformed lines and the raw error body
        self.http = httpx.AsyncClient(base_url=self.api_url, headers=self.headers, timeout=timeout)

        # The official SDK is fine for plain listing calls
        self.client = ollama.AsyncClient(host=self.api_url, headers=self.headers, timeout=timeout)

        logger.info("Initialized Ollama client: url=%s", self.api_url)

    async def health_check(self) -> bool:
        """Return True if the server root answers with a 2xx status."""
        try:
            response = await self.http.get("/")
        except httpx.HTTPError as e:
            logger.warning("Ollama health check failed: %s", e)
            return False
        return response.is_success

    async def get_version(self) -> str:
        response = await self.http.get("/api/version")
        response.raise_for_status()
        return VersionResponse.model_validate_json(response.content).version

    async def list_models(self) -> list[str]:
        """Names of the models installed on the server."""
        raw = await self.client.list()
        data = raw.model_dump()
        names = [m.get("model") or m.get("name") for m in data.get("models") or []]
        return [name for name in names if name]

    async def chat(self, request: ChatRequest) -> StreamFragment:
        """Send a non-streaming chat request and return the whole reply as one fragment."""
        body = request.model_copy(update={"stream": False}).to_dict()
        logger.debug(
            "Sending chat request: model=%s, messages=%d", request.model, len(body["messages"])
        )

        start = time.time()
        response = await self.http.post("/api/chat", json=body)
        if not response.is_success:
            raise server_error(response.status_code, response.text)

        fragment = decode_chat_response(response.content)
        duration_ms = int((time.time() - start) * 1000)
        logger.debug("Chat response in %dms: %d chars", duration_ms, len(fragment.text))
        if fragment.tool_calls:
            logger.info("Received %d tool call(s)", len(fragment.tool_calls))
        return fragment

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamFragment]:
        """
        Send a streaming chat request and yield fragments as lines arrive.

        The HTTP response is closed when the generator finishes or is closed early.
        """
        body = request.model_copy(update={"stream": True}).to_dict()
        logger.debug(
            "Sending streaming chat request: model=%s, messages=%d",
            request.model,
            len(body["messages"]),
        )

        async with self.http.stream("POST", "/api/chat", json=body) as response:
            if not response.is_success:
                await response.aread()
                raise server_error(response.status_code, response.text)

            async for fragment in decode_chat_stream(response.aiter_lines()):
                yield fragment

    async def close(self) -> None:
        """Close both connection pools (raw httpx and the SDK's own)."""
        await self.http.aclose()
        await self.client._client.aclose()
