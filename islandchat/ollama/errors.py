"""Errors raised by the Ollama client."""

import json

from islandchat.constants import ChatConstants


def _error_message(body: str) -> str:
    """The ``error`` field of a JSON error body, or the body itself."""
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return body


class OllamaServerError(Exception):
    """The server answered with an application error."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(_error_message(body) or f"HTTP {status}")


class ToolsUnsupportedError(OllamaServerError):
    """The selected model rejected a request carrying tool definitions."""


def server_error(status: int, body: str) -> OllamaServerError:
    """Pick the error type matching a server error body."""
    if ChatConstants.TOOLS_UNSUPPORTED_MARKER in body.lower():
        return ToolsUnsupportedError(status, body)
    return OllamaServerError(status, body)
