"""Tests for the observable state store."""

import asyncio

import pytest

from islandchat.chat.models import ChatState
from islandchat.chat.state import StateStore


class TestStateStore:
    """Atomic updates and fan-out."""

    def test_update_and_set(self):
        store = StateStore()
        store.set(is_loading=True, progress="busy")
        store.update(lambda s: s.model_copy(update={"search_query": f"{s.progress}!"}))

        assert store.value.is_loading is True
        assert store.value.search_query == "busy!"

    @pytest.mark.asyncio
    async def test_subscriber_sees_current_then_updates(self):
        store = StateStore(ChatState(progress="first"))
        updates = store.subscribe()

        assert (await anext(updates)).progress == "first"
        store.set(progress="second")
        assert (await anext(updates)).progress == "second"
        await updates.aclose()

    @pytest.mark.asyncio
    async def test_slow_subscriber_gets_latest_snapshot(self):
        store = StateStore()
        updates = store.subscribe()
        await anext(updates)

        for n in range(5):
            store.set(progress=f"step {n}")

        latest = await asyncio.wait_for(anext(updates), timeout=1)
        assert latest.progress == "step 4"
        await updates.aclose()

    @pytest.mark.asyncio
    async def test_every_subscriber_is_notified(self):
        store = StateStore()
        first, second = store.subscribe(), store.subscribe()
        await anext(first)
        await anext(second)

        store.set(is_searching=True)

        assert (await anext(first)).is_searching is True
        assert (await anext(second)).is_searching is True
        await first.aclose()
        await second.aclose()
