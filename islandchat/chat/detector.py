"""Detection of web search requests in model output."""

from __future__ import annotations

import re

from islandchat.chat.models import Continue, Done, ResponseAccumulator, ToolCallDetected
from islandchat.constants import ChatConstants
from islandchat.ollama.models import StreamFragment, ToolCall

# Three ways a model asks for a search in plain text:
#   web_search(query="...")   web_search("...")
#   [SEARCH: "..."]
#   call web_search query: "..."   (also tool_code/use/query/search/lookup)
SEARCH_PATTERN = re.compile(
    r"web_search\s*\(\s*(?:query\s*=\s*)?[\"'](.+?)[\"']\s*\)"
    r"|\[SEARCH:\s*[\"'](.+?)[\"']\]"
    r"|(?:tool_code|call|use|query|search|lookup)\s+web_search\s+query:?\s*[\"'](.+?)[\"']",
    re.IGNORECASE,
)

# Every pattern alternative ends in one of these
_MATCH_TERMINATORS = frozenset("\"')]")


def _match_query(source: str) -> str | None:
    match = SEARCH_PATTERN.search(source)
    if match is None:
        return None
    return next((group for group in match.groups() if group), None)


def _structured_query(tool_calls: list[ToolCall] | None) -> tuple[str, str] | None:
    if not tool_calls:
        return None
    first = tool_calls[0]
    if first.function is None:
        return None
    query = first.function.arguments.get("query")
    if query is None:
        return None
    query = str(query)
    if not query:
        return None
    return query, first.id or ChatConstants.MANUAL_TOOL_CALL_ID


def detect_search(
    text: str, reasoning: str = "", tool_calls: list[ToolCall] | None = None
) -> ToolCallDetected | None:
    """
    Find a search request in a (possibly partial) model response.

    A structured tool call with a non-empty ``query`` wins. Otherwise the text is
    matched against SEARCH_PATTERN, then the reasoning.
    """
    structured = _structured_query(tool_calls)
    if structured is not None:
        query, call_id = structured
        return ToolCallDetected(query, call_id, text, reasoning, tool_calls)

    query = _match_query(text)
    if query is None and reasoning:
        query = _match_query(reasoning)
    if query is None:
        return None
    return ToolCallDetected(query, ChatConstants.MANUAL_TOOL_CALL_ID, text, reasoning, tool_calls)


class SearchDetector:
    """
    Incremental detector for one streamed response.

    Feeding fragments in order gives the same answer as calling detect_search on the
    cumulative text after each fragment, but the text patterns are only re-run when
    the newest delta could complete a match.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.response = ResponseAccumulator()
        self.detected: ToolCallDetected | None = None

    def feed(self, fragment: StreamFragment) -> Continue | ToolCallDetected:
        if self.detected is not None:
            return self.detected

        acc = self.response
        acc.text += fragment.text
        acc.reasoning += fragment.reasoning
        if fragment.tool_calls is not None:
            acc.tool_calls = fragment.tool_calls
        if not self.enabled:
            return Continue()

        structured = _structured_query(fragment.tool_calls)
        if structured is not None:
            query, call_id = structured
            self.detected = ToolCallDetected(
                query, call_id, acc.text, acc.reasoning, acc.tool_calls
            )
            return self.detected

        query = None
        if _MATCH_TERMINATORS.intersection(fragment.text):
            query = _match_query(acc.text)
        if query is None and _MATCH_TERMINATORS.intersection(fragment.reasoning):
            query = _match_query(acc.reasoning)
        if query is None:
            return Continue()

        self.detected = ToolCallDetected(
            query, ChatConstants.MANUAL_TOOL_CALL_ID, acc.text, acc.reasoning, acc.tool_calls
        )
        return self.detected

    def finish(self) -> Done:
        """Result for a response that ended without a search request."""
        return Done(self.response.text, self.response.reasoning)
