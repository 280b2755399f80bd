"""Search execution against the configured engines."""

from __future__ import annotations

import html.parser
import logging
from urllib.parse import quote_plus

import httpx

from islandchat.constants import ChatConstants
from islandchat.responses import IslandResponse
from islandchat.search.models import SearchEngineConfig, SearchEngineType

logger = logging.getLogger(__name__)

# Elements that never get an end tag, so they must not affect nesting depth
_VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr"}
)


class _DuckDuckGoResultParser(html.parser.HTMLParser):
    """Collects (title, snippet) pairs from the DuckDuckGo HTML results page."""

    def __init__(self) -> None:
        super().__init__()
        self.results: list[dict[str, list[str]]] = []
        self._depth = 0
        self._field: str | None = None
        self._field_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _VOID_ELEMENTS:
            return
        self._depth += 1
        classes = (dict(attrs).get("class") or "").split()
        if "result" in classes:
            self.results.append({"title": [], "snippet": []})
        elif self.results and self._field is None:
            if "result__a" in classes and not self.results[-1]["title"]:
                self._field = "title"
            elif "result__snippet" in classes and not self.results[-1]["snippet"]:
                self._field = "snippet"
            if self._field:
                self._field_depth = self._depth

    def handle_endtag(self, tag: str) -> None:
        if tag in _VOID_ELEMENTS:
            return
        if self._field and self._depth == self._field_depth:
            self._field = None
        self._depth = max(0, self._depth - 1)

    def handle_data(self, data: str) -> None:
        if self._field:
            self.results[-1][self._field].append(data)


def _normalize(parts: list[str]) -> str:
    return " ".join("".join(parts).split())


def parse_duckduckgo_results(page: str, limit: int = ChatConstants.DUCKDUCKGO_MAX_RESULTS) -> str:
    """Format the first ``limit`` results of a DuckDuckGo HTML page as markdown text."""
    parser = _DuckDuckGoResultParser()
    parser.feed(page)
    parser.close()

    entries = [
        f"**{_normalize(result['title'])}**\n{_normalize(result['snippet'])}"
        for result in parser.results[:limit]
    ]
    if not entries:
        return IslandResponse.NO_RESULTS
    return "\n\n".join(entries)


def _auth_headers(engine: SearchEngineConfig) -> dict[str, str]:
    if not engine.api_key:
        return {}
    if engine.auth_header.lower() == "authorization":
        return {engine.auth_header: f"Bearer {engine.api_key}"}
    return {engine.auth_header: engine.api_key}


class SearchProvider:
    """Runs a query against one search engine and returns the results as text."""

    def __init__(
        self,
        timeout: float = ChatConstants.SEARCH_TIMEOUT,
        duckduckgo_url: str = ChatConstants.DUCKDUCKGO_URL,
    ):
        self.duckduckgo_url = duckduckgo_url
        self.http = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def search(self, query: str, engine: SearchEngineConfig) -> str:
        """
        Search with the given engine.

        Never raises for search failures: the error is returned as text so it can be
        handed to the model like any other result.
        """
        logger.info("Searching %s for: %s", engine.name, query)
        try:
            if engine.type == SearchEngineType.DUCKDUCKGO:
                return await self._search_duckduckgo(query)
            if engine.type == SearchEngineType.API_GET:
                return await self._search_api_get(query, engine)
            if engine.type == SearchEngineType.API_POST:
                return await self._search_api_post(query, engine)
            logger.warning("Unknown search engine type: %s", engine.type)
            return IslandResponse.UNKNOWN_ENGINE
        except Exception as e:
            logger.warning("Search failed on %s: %s", engine.name, e)
            return IslandResponse.SEARCH_ERROR.format(error=e)

    async def _search_duckduckgo(self, query: str) -> str:
        response = await self.http.get(
            self.duckduckgo_url,
            params={"q": query},
            headers={"User-Agent": ChatConstants.DUCKDUCKGO_USER_AGENT},
        )
        response.raise_for_status()
        return parse_duckduckgo_results(response.text)

    async def _search_api_get(self, query: str, engine: SearchEngineConfig) -> str:
        encoded = quote_plus(query)
        if "{query}" in engine.url:
            url = engine.url.replace("{query}", encoded)
        else:
            separator = "&" if "?" in engine.url else "?"
            url = f"{engine.url}{separator}q={encoded}"

        response = await self.http.get(url, headers=_auth_headers(engine))
        response.raise_for_status()
        body = response.text
        if body.lstrip().startswith(("{", "[")):
            return IslandResponse.JSON_RESULTS_PREFIX + body
        return IslandResponse.TEXT_RESULTS_PREFIX + body

    async def _search_api_post(self, query: str, engine: SearchEngineConfig) -> str:
        is_serper = ChatConstants.SERPER_HOST in engine.url
        payload = {"q": query} if is_serper else {"query": query}

        headers = _auth_headers(engine)
        key_header = ChatConstants.SERPER_KEY_HEADER
        if is_serper and engine.api_key and engine.auth_header.lower() != key_header.lower():
            headers[key_header] = engine.api_key

        response = await self.http.post(engine.url, json=payload, headers=headers)
        response.raise_for_status()
        return IslandResponse.POST_RESULTS_PREFIX + response.text

    async def close(self) -> None:
        await self.http.aclose()
