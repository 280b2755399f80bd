"""Pydantic models for Ollama API structures."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolCallFunction(BaseModel):
    """Function details within a tool call."""

    name: str | None = None
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _decode_arguments(cls, value: Any) -> Any:
        # OpenAI-compatible servers send arguments as a JSON string
        if value is None:
            return {}
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return {}
            return decoded if isinstance(decoded, dict) else {}
        return value


class ToolCall(BaseModel):
    """A structured tool call emitted by the model."""

    id: str | None = None
    type: str | None = None
    function: ToolCallFunction | None = None


class ChatMessage(BaseModel):
    """A message as sent to /api/chat."""

    role: str
    content: str | None = None
    reasoning_content: str | None = None
    images: list[str] | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire format, with unset fields omitted."""
        return self.model_dump(exclude_none=True)


class ChatRequest(BaseModel):
    """Request body for /api/chat."""

    model: str
    messages: list[ChatMessage]
    stream: bool = True
    tools: list[dict[str, Any]] | None = None
    # Asks servers with built-in search to handle it when the model cannot call tools
    web_search: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ChatResponseMessage(BaseModel):
    """Message object inside a chat response or stream line."""

    model_config = ConfigDict(extra="allow")

    role: str = "assistant"
    content: str | None = None
    reasoning_content: str | None = None
    thinking: str | None = None
    tool_calls: list[ToolCall] | None = None

    @property
    def reasoning(self) -> str:
        """Reasoning text, whichever field the server used for it."""
        return self.reasoning_content or self.thinking or ""


class ChatResponse(BaseModel):
    """One /api/chat response object (a whole reply or one NDJSON line)."""

    model_config = ConfigDict(extra="allow")

    model: str | None = None
    created_at: str | None = None
    message: ChatResponseMessage | None = None
    done: bool = False
    error: str | None = None


class StreamFragment(BaseModel):
    """One decoded unit of a model response."""

    text: str = ""
    reasoning: str = ""
    tool_calls: list[ToolCall] | None = None

    @classmethod
    def from_message(cls, message: ChatResponseMessage | None) -> StreamFragment | None:
        """Build a fragment, or None when the message carries nothing worth emitting."""
        if message is None:
            return None
        text = message.content or ""
        reasoning = message.reasoning
        if not text and not reasoning and message.tool_calls is None:
            return None
        return cls(text=text, reasoning=reasoning, tool_calls=message.tool_calls)


class VersionResponse(BaseModel):
    """Response from /api/version."""

    version: str = ""
