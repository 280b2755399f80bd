"""Data models for the chat engine."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from islandchat.constants import ChatConstants, ChatPhase, MessageRole, ProgressLabel
from islandchat.ollama.models import ChatMessage, ToolCall
from islandchat.search.models import SearchEngineConfig, default_search_engine


class Turn(BaseModel):
    """One message in the displayed conversation."""

    model_config = ConfigDict(frozen=True)

    id: int
    role: MessageRole
    content: str | None = None
    reasoning: str | None = None
    images: list[str] | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_message(self, include_images: bool = True) -> ChatMessage:
        """Convert to the /api/chat message format."""
        return ChatMessage(
            role=self.role,
            content=self.content,
            reasoning_content=self.reasoning or None,
            images=(self.images or None) if include_images else None,
            tool_calls=self.tool_calls,
            tool_call_id=self.tool_call_id,
        )


class QuickAction(BaseModel):
    """A canned prompt offered as a shortcut."""

    label: str
    prompt: str


DEFAULT_QUICK_ACTIONS = [
    QuickAction(
        label="Summarize", prompt="Summarize the conversation so far in a few bullet points."
    ),
    QuickAction(label="Tasks", prompt="List any action items or tasks mentioned so far."),
    QuickAction(label="Simplify", prompt="Explain your last answer in simpler terms."),
]


class ChatPreferences(BaseModel):
    """Settings owned by the caller; changes are reported back for it to persist."""

    server_url: str = ""
    api_key: str | None = None
    selected_model: str | None = None
    web_search_enabled: bool = True
    streaming_enabled: bool = True
    search_engines: list[SearchEngineConfig] = Field(
        default_factory=lambda: [default_search_engine()]
    )
    selected_search_engine_id: str = ChatConstants.DEFAULT_SEARCH_ENGINE_ID

    def selected_engine(self) -> SearchEngineConfig:
        """The selected engine, falling back to the first configured one."""
        for engine in self.search_engines:
            if engine.id == self.selected_search_engine_id:
                return engine
        return self.search_engines[0] if self.search_engines else default_search_engine()


class ChatState(BaseModel):
    """Snapshot of everything the presentation layer renders."""

    model_config = ConfigDict(frozen=True)

    turns: list[Turn] = Field(default_factory=list)
    is_loading: bool = False
    is_searching: bool = False
    search_query: str | None = None
    phase: ChatPhase = ChatPhase.IDLE
    progress: str = ProgressLabel.IDLE
    error: str | None = None
    info: str | None = None
    available_models: list[str] = Field(default_factory=list)
    is_server_reachable: bool = False
    attached_images: list[str] = Field(default_factory=list)
    quick_actions: list[QuickAction] = Field(default_factory=lambda: list(DEFAULT_QUICK_ACTIONS))
    preferences: ChatPreferences = Field(default_factory=ChatPreferences)


# --- Fragment step results ---


@dataclass(frozen=True)
class Continue:
    """Keep consuming the current response."""


@dataclass(frozen=True)
class ToolCallDetected:
    """The model asked for a web search; the rest of its response is abandoned."""

    query: str
    call_id: str
    partial_text: str = ""
    partial_reasoning: str = ""
    tool_calls: list[ToolCall] | None = None


@dataclass(frozen=True)
class Done:
    """The response finished without asking for a search."""

    text: str = ""
    reasoning: str = ""


@dataclass
class ResponseAccumulator:
    """Cumulative text, reasoning, and tool calls of one model response."""

    text: str = ""
    reasoning: str = ""
    tool_calls: list[ToolCall] | None = None
