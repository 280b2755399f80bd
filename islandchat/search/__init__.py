"""Web search: engine configuration, providers, and the web_search tool."""

from islandchat.search.models import SearchEngineConfig, SearchEngineType, default_search_engine
from islandchat.search.provider import SearchProvider
from islandchat.search.tool import WebSearchTool

__all__ = [
    "SearchEngineConfig",
    "SearchEngineType",
    "SearchProvider",
    "WebSearchTool",
    "default_search_engine",
]
