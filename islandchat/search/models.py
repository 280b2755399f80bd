"""Search engine configuration models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from islandchat.constants import ChatConstants


class SearchEngineType(StrEnum):
    """How an engine is queried."""

    DUCKDUCKGO = "DUCKDUCKGO"
    API_GET = "API_GET"
    API_POST = "API_POST"


class SearchEngineConfig(BaseModel):
    """A configured search engine."""

    id: str
    name: str
    # Kept as a plain string so engines persisted with an unknown type still load
    type: str = SearchEngineType.DUCKDUCKGO
    url: str = ""
    api_key: str | None = None
    auth_header: str = ChatConstants.DEFAULT_AUTH_HEADER
    is_deletable: bool = True


def default_search_engine() -> SearchEngineConfig:
    """The built-in DuckDuckGo scraper, which cannot be removed."""
    return SearchEngineConfig(
        id=ChatConstants.DEFAULT_SEARCH_ENGINE_ID,
        name=ChatConstants.DEFAULT_SEARCH_ENGINE_NAME,
        type=SearchEngineType.DUCKDUCKGO,
        is_deletable=False,
    )
