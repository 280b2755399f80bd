"""Conversation history and per-session flags."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from datetime import datetime

from islandchat.chat.models import ChatState, ToolCallDetected, Turn
from islandchat.chat.state import StateStore
from islandchat.constants import ChatConstants, MessageRole
from islandchat.ollama.models import ChatMessage, ToolCall, ToolCallFunction
from islandchat.prompts import Prompt

logger = logging.getLogger(__name__)


class ConversationSession:
    """
    Owns the displayed turns (published through the StateStore), whether the
    selected model accepts structured tools, and the one in-flight generation task.
    """

    def __init__(self, store: StateStore):
        self.store = store
        self.model_supports_tools = True
        self.active_task: asyncio.Task | None = None
        self._ids = itertools.count(int(time.time() * 1000))

    @property
    def turns(self) -> list[Turn]:
        return self.store.value.turns

    def next_id(self) -> int:
        return next(self._ids)

    # --- Displayed history ---

    def append_turn(self, turn: Turn) -> Turn:
        self.store.update(lambda s: s.model_copy(update={"turns": [*s.turns, turn]}))
        return turn

    def replace_turn(self, turn: Turn) -> None:
        """Swap in a new version of the turn with the same id (the streaming turn)."""

        def _replace(state: ChatState) -> ChatState:
            turns = [turn if t.id == turn.id else t for t in state.turns]
            return state.model_copy(update={"turns": turns})

        self.store.update(_replace)

    def remove_turn(self, turn_id: int) -> None:
        def _remove(state: ChatState) -> ChatState:
            turns = [t for t in state.turns if t.id != turn_id]
            return state.model_copy(update={"turns": turns})

        self.store.update(_remove)

    def clear(self) -> None:
        self.store.set(turns=[])

    # --- Request assembly ---

    def build_system_message(
        self, web_search_enabled: bool, today: datetime | None = None
    ) -> ChatMessage:
        """Fresh system message for one request; never stored in history."""
        today = today or datetime.now()
        content = Prompt.SYSTEM_DATE_HEADER.format(date=today.strftime("%Y-%m-%d"))
        content += Prompt.BASE_SYSTEM_PROMPT
        if web_search_enabled:
            if self.model_supports_tools:
                mode = Prompt.TOOL_MODE_PROMPT
            else:
                mode = Prompt.NO_TOOL_MODE_PROMPT
            content += "\n\n" + Prompt.WEB_SEARCH_INSTRUCTION + mode
        return ChatMessage(role=MessageRole.SYSTEM, content=content)

    def build_request_messages(
        self,
        history: list[Turn],
        web_search_enabled: bool,
        new_turn: Turn | None = None,
        today: datetime | None = None,
    ) -> list[ChatMessage]:
        """
        System message, then the prior history, then the new user turn.

        History images are only kept for the last IMAGE_RETENTION_WINDOW positions of
        the history; the new turn always carries its attached images.
        """
        cutoff = len(history) - ChatConstants.IMAGE_RETENTION_WINDOW
        messages = [self.build_system_message(web_search_enabled, today)]
        messages.extend(
            turn.to_message(include_images=index >= cutoff) for index, turn in enumerate(history)
        )
        if new_turn is not None:
            messages.append(new_turn.to_message(include_images=True))
        return messages

    def refresh_system_message(
        self, messages: list[ChatMessage], web_search_enabled: bool
    ) -> list[ChatMessage]:
        """Rebuild the leading system message, e.g. after a capability downgrade."""
        return [self.build_system_message(web_search_enabled), *messages[1:]]

    def search_exchange(self, detected: ToolCallDetected, result: str) -> list[ChatMessage]:
        """
        The assistant call and its result, to append to request history as a pair.

        With structured tools the result is a ``tool`` message linked by id; otherwise
        it is a ``user`` message asking the model to answer from the results.
        """
        results = ChatConstants.SEARCH_RESULTS_PREFIX + result
        if self.model_supports_tools:
            tool_calls = detected.tool_calls or [
                ToolCall(
                    id=detected.call_id,
                    type="function",
                    function=ToolCallFunction(
                        name=ChatConstants.WEB_SEARCH_TOOL_NAME,
                        arguments={"query": detected.query},
                    ),
                )
            ]
            call = ChatMessage(
                role=MessageRole.ASSISTANT,
                content=None,
                reasoning_content=detected.partial_reasoning or None,
                tool_calls=tool_calls,
            )
            answer = ChatMessage(
                role=MessageRole.TOOL, content=results, tool_call_id=detected.call_id
            )
        else:
            call = ChatMessage(
                role=MessageRole.ASSISTANT,
                content=detected.partial_text,
                reasoning_content=detected.partial_reasoning or None,
                tool_calls=detected.tool_calls,
            )
            answer = ChatMessage(
                role=MessageRole.USER, content=results + Prompt.SEARCH_RESULTS_FOLLOWUP
            )
        return [call, answer]
