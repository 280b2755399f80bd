"""Tests for SearchProvider engines."""

import pytest

from islandchat.search.models import SearchEngineConfig, SearchEngineType, default_search_engine
from islandchat.search.provider import SearchProvider, parse_duckduckgo_results
from islandchat.search.tool import WebSearchTool
from islandchat.tests.mocks.search_server import duckduckgo_page


@pytest.fixture
async def provider(search_server):
    provider = SearchProvider(timeout=2.0, duckduckgo_url=f"{search_server.url}/html/")
    yield provider
    await provider.close()


def _engine(type: str, url: str, **kwargs) -> SearchEngineConfig:
    return SearchEngineConfig(id="custom", name="Custom", type=type, url=url, **kwargs)


class TestDuckDuckGo:
    """Scraping the DuckDuckGo HTML endpoint."""

    def test_parse_formats_title_and_snippet(self):
        page = duckduckgo_page(
            [("Python <b>3.13</b> released", "The   new\n release brings <b>a JIT</b>.")]
        )
        assert parse_duckduckgo_results(page) == (
            "**Python 3.13 released**\nThe new release brings a JIT."
        )

    def test_parse_takes_first_five(self):
        page = duckduckgo_page([(f"Title {n}", f"Snippet {n}") for n in range(8)])
        entries = parse_duckduckgo_results(page).split("\n\n")
        assert entries == [f"**Title {n}**\nSnippet {n}" for n in range(5)]

    def test_parse_no_results(self):
        assert parse_duckduckgo_results("<html><body>nothing</body></html>") == "No results found."

    @pytest.mark.asyncio
    async def test_search(self, provider, search_server):
        search_server.html = duckduckgo_page([("Weather", "Sunny and 20C")])

        result = await provider.search("today's weather", default_search_engine())

        assert result == "**Weather**\nSunny and 20C"
        request = search_server.requests[0]
        assert request["query"] == {"q": "today's weather"}
        assert request["headers"]["user-agent"].startswith("Mozilla/5.0")

    @pytest.mark.asyncio
    async def test_http_error_becomes_text(self, provider, search_server):
        search_server.status = 403
        result = await provider.search("q", default_search_engine())
        assert result.startswith("Search error: ")


class TestApiGet:
    """Generic GET APIs."""

    @pytest.mark.asyncio
    async def test_query_placeholder(self, provider, search_server):
        engine = _engine(SearchEngineType.API_GET, f"{search_server.url}/api/search/{{query}}")

        await provider.search("hello world", engine)

        assert search_server.requests[0]["path"] == "/api/search/hello+world"

    @pytest.mark.asyncio
    async def test_appends_q_parameter(self, provider, search_server):
        engine = _engine(SearchEngineType.API_GET, f"{search_server.url}/api/search")
        await provider.search("a b", engine)

        engine = _engine(SearchEngineType.API_GET, f"{search_server.url}/api/search?lang=en")
        await provider.search("c", engine)

        assert search_server.requests[0]["query"] == {"q": "a b"}
        assert search_server.requests[1]["query"] == {"lang": "en", "q": "c"}

    @pytest.mark.asyncio
    async def test_bearer_authorization(self, provider, search_server):
        url = f"{search_server.url}/api/search"
        engine = _engine(SearchEngineType.API_GET, url, api_key="k1")
        await provider.search("q", engine)
        assert search_server.requests[0]["headers"]["authorization"] == "Bearer k1"

    @pytest.mark.asyncio
    async def test_raw_key_header(self, provider, search_server):
        engine = _engine(
            SearchEngineType.API_GET,
            f"{search_server.url}/api/search",
            api_key="k2",
            auth_header="X-Subscription-Token",
        )
        await provider.search("q", engine)

        headers = search_server.requests[0]["headers"]
        assert headers["x-subscription-token"] == "k2"
        assert "authorization" not in headers

    @pytest.mark.asyncio
    async def test_no_key_no_header(self, provider, search_server):
        engine = _engine(SearchEngineType.API_GET, f"{search_server.url}/api/search")
        await provider.search("q", engine)
        assert "authorization" not in search_server.requests[0]["headers"]

    @pytest.mark.asyncio
    async def test_result_prefix(self, provider, search_server):
        engine = _engine(SearchEngineType.API_GET, f"{search_server.url}/api/search")

        search_server.api_body = '[{"title": "x"}]'
        result = await provider.search("q", engine)
        assert result == 'Search Results (JSON Raw):\n[{"title": "x"}]'

        search_server.api_body = "plain text answer"
        assert await provider.search("q", engine) == "Search Results:\nplain text answer"


class TestApiPost:
    """Generic POST APIs."""

    @pytest.mark.asyncio
    async def test_query_body(self, provider, search_server):
        engine = _engine(SearchEngineType.API_POST, f"{search_server.url}/api/search")

        result = await provider.search("rust news", engine)

        assert search_server.requests[0]["json"] == {"query": "rust news"}
        assert result.startswith("Search Results (POST):\n")

    @pytest.mark.asyncio
    async def test_serper_shape_and_headers(self, provider, search_server, monkeypatch):
        monkeypatch.setattr("islandchat.constants.ChatConstants.SERPER_HOST", "localhost")
        url = f"{search_server.url}/api/search"
        engine = _engine(SearchEngineType.API_POST, url, api_key="sk")

        await provider.search("rust news", engine)

        request = search_server.requests[0]
        assert request["json"] == {"q": "rust news"}
        assert request["headers"]["authorization"] == "Bearer sk"
        assert request["headers"]["x-api-key"] == "sk"

    @pytest.mark.asyncio
    async def test_serper_key_header_not_duplicated(self, provider, search_server, monkeypatch):
        monkeypatch.setattr("islandchat.constants.ChatConstants.SERPER_HOST", "localhost")
        engine = _engine(
            SearchEngineType.API_POST,
            f"{search_server.url}/api/search",
            api_key="sk",
            auth_header="x-api-key",
        )

        await provider.search("q", engine)

        headers = search_server.requests[0]["headers"]
        assert headers["x-api-key"] == "sk"
        assert "authorization" not in headers


class TestFailures:
    """Failures are results, not exceptions."""

    @pytest.mark.asyncio
    async def test_unknown_engine_type(self, provider):
        result = await provider.search("q", _engine("CARRIER_PIGEON", "http://example.invalid"))
        assert result == "Error: Unknown search engine type."

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self, provider):
        engine = _engine(SearchEngineType.API_GET, "http://localhost:1/search")
        result = await provider.search("q", engine)
        assert result.startswith("Search error: ")


class TestWebSearchTool:
    """The tool definition offered to the model."""

    def test_ollama_format(self):
        tool = WebSearchTool().to_ollama_tool()
        assert tool["type"] == "function"
        assert tool["function"]["name"] == "web_search"
        assert tool["function"]["description"] == "Search the web for up-to-date information."
        assert tool["function"]["parameters"]["required"] == ["query"]
        assert tool["function"]["parameters"]["properties"]["query"]["type"] == "string"
