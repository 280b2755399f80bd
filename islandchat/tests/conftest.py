"""Pytest fixtures for islandchat tests."""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any, cast

import pytest

from islandchat.chat.models import ChatPreferences
from islandchat.chat.orchestrator import ChatOrchestrator
from islandchat.config import Config

# Re-export mock fixtures so they can be used directly in tests
from islandchat.tests.mocks.ollama_server import MockOllamaServer
from islandchat.tests.mocks.search_patches import mock_search  # noqa: F401
from islandchat.tests.mocks.search_server import MockSearchServer

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)

TEST_MODEL = "test-model"

# Default config values for tests
DEFAULT_TEST_CONFIG = {
    "ollama_api_url": "http://localhost:11434",
    "ollama_model": TEST_MODEL,
    "web_search_enabled": True,
    "streaming_enabled": True,
    "log_level": "DEBUG",
    # Fast failures against the mock servers
    "ollama_connect_timeout": 2.0,
    "ollama_read_timeout": 5.0,
    "search_timeout": 2.0,
}


async def wait_until(
    condition: Callable[[], bool],
    timeout: float = 10.0,
    interval: float = 0.01,
) -> None:
    """
    Poll a condition until it becomes true, or raise TimeoutError.

    Args:
        condition: Synchronous callable that returns True when ready.
        timeout: Maximum seconds to wait before raising TimeoutError.
        interval: Seconds between polls.
    """
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if condition():
            return
        await asyncio.sleep(interval)
    raise TimeoutError(f"Condition not met within {timeout}s")


@pytest.fixture
async def ollama_server() -> AsyncIterator[MockOllamaServer]:
    """Start a mock Ollama server and yield it."""
    server = MockOllamaServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
async def search_server() -> AsyncIterator[MockSearchServer]:
    """Start a mock search server and yield it."""
    server = MockSearchServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
def make_config(ollama_server) -> Callable[..., Config]:
    """
    Factory fixture for creating test configs with custom overrides.

    Usage:
        config = make_config()  # defaults
        config = make_config(streaming_enabled=False)  # with override
    """

    def _make_config(**overrides: Any) -> Config:
        config_kwargs: dict[str, Any] = {
            **DEFAULT_TEST_CONFIG,
            "ollama_api_url": ollama_server.url,
            **overrides,
        }
        return Config(**cast(Any, config_kwargs))

    return _make_config


@pytest.fixture
async def make_chat(make_config) -> AsyncIterator[Callable[..., ChatOrchestrator]]:
    """
    Factory fixture for orchestrators pointed at the mock Ollama server.

    Every orchestrator created is closed at teardown. Preference changes are
    recorded on ``chat.saved_preferences``.
    """
    created: list[ChatOrchestrator] = []

    def _make_chat(
        preferences: ChatPreferences | None = None, **config_overrides: Any
    ) -> ChatOrchestrator:
        saved: list[ChatPreferences] = []
        chat = ChatOrchestrator(
            make_config(**config_overrides),
            preferences,
            on_preferences_changed=saved.append,
        )
        chat.saved_preferences = saved  # type: ignore[attr-defined]
        created.append(chat)
        return chat

    yield _make_chat

    for chat in created:
        await chat.aclose()
