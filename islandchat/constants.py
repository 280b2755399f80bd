"""Constants for islandchat."""

from enum import StrEnum


class ChatPhase(StrEnum):
    """Where the orchestration loop currently is."""

    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING_ANSWER = "streaming_answer"
    SEARCHING = "searching"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class MessageRole(StrEnum):
    """Role of a turn in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ChatConstants:
    """Fixed values shared across the chat engine."""

    # ── Search ──
    WEB_SEARCH_TOOL_NAME = "web_search"
    MANUAL_TOOL_CALL_ID = "manual_id"
    DEFAULT_SEARCH_ENGINE_ID = "default_ddg"
    DEFAULT_SEARCH_ENGINE_NAME = "DuckDuckGo (Scraper)"
    DEFAULT_AUTH_HEADER = "Authorization"
    DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/"
    DUCKDUCKGO_USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    )
    DUCKDUCKGO_MAX_RESULTS = 5
    SERPER_HOST = "serper.dev"
    SERPER_KEY_HEADER = "X-API-KEY"
    SEARCH_RESULTS_PREFIX = "SEARCH_RESULTS:\n"
    MAX_SEARCH_ROUNDS = 5

    # ── Context ──
    # Only the last N turns (by index) keep their images on the wire
    IMAGE_RETENTION_WINDOW = 2

    # ── Timeouts (seconds) ──
    CONNECT_TIMEOUT = 30.0
    READ_TIMEOUT = 60.0
    SEARCH_TIMEOUT = 15.0

    # ── Banners (seconds) ──
    ERROR_BANNER_SECONDS = 10.0
    INFO_BANNER_SECONDS = 5.0

    # Marker found in a raw NDJSON line that ends the stream even if unparsable
    STREAM_DONE_MARKER = '"done":true'

    # Substring of the server error body when a model rejects the tools field
    TOOLS_UNSUPPORTED_MARKER = "not support tools"


class ProgressLabel:
    """Progress text shown for each loop state."""

    IDLE = "Thinking..."
    SEARCHING = 'Searching the web for "{query}"...'
    ANALYZING = "AI is analyzing search results..."
    SYNTHESIZING = "Writing final response..."
