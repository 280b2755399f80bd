"""Observable chat state with fan-out to subscribers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from islandchat.chat.models import ChatState

logger = logging.getLogger(__name__)


class StateStore:
    """
    Single-writer holder of the current ChatState.

    Every change goes through update(), which runs the read-modify-write without
    awaiting, so it is atomic on the event loop. Each subscriber gets a queue that
    holds at most the newest unseen snapshot.
    """

    def __init__(self, initial: ChatState | None = None):
        self._value = initial or ChatState()
        self._subscribers: list[asyncio.Queue[ChatState]] = []

    @property
    def value(self) -> ChatState:
        return self._value

    def update(self, fn: Callable[[ChatState], ChatState]) -> ChatState:
        """Replace the state with fn(current) and publish it."""
        self._value = fn(self._value)
        self._publish(self._value)
        return self._value

    def set(self, **changes: Any) -> ChatState:
        """Shorthand for an update that only assigns fields."""
        return self.update(lambda state: state.model_copy(update=changes))

    def _publish(self, state: ChatState) -> None:
        for queue in self._subscribers:
            # Slow readers only need the latest snapshot
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(state)

    async def subscribe(self) -> AsyncIterator[ChatState]:
        """Yield the current state, then every later state (conflated for slow readers)."""
        queue: asyncio.Queue[ChatState] = asyncio.Queue(maxsize=1)
        queue.put_nowait(self._value)
        self._subscribers.append(queue)
        logger.debug("State subscriber added (%d total)", len(self._subscribers))
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)
