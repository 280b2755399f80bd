"""Ollama transport: client, wire models, and stream decoding."""

from islandchat.ollama.client import OllamaClient
from islandchat.ollama.errors import OllamaServerError, ToolsUnsupportedError
from islandchat.ollama.stream import decode_chat_response, decode_chat_stream

__all__ = [
    "OllamaClient",
    "OllamaServerError",
    "ToolsUnsupportedError",
    "decode_chat_response",
    "decode_chat_stream",
]
