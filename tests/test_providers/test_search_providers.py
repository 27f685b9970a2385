"""
Tests for the DuckDuckGo and SerpApi search providers.
"""

from unittest.mock import patch

import pytest

DDG_HTML = """
<html><body>
  <div class="result results_links web-result">
    <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.youtube.com%2F%40avlinfilms&amp;rut=abc">
      Avery Lin - YouTube
    </a>
    <a class="result__snippet">AI short films by <b>Avery Lin</b></a>
  </div>
  <div class="result">
    <a class="result__a" href="https://avlin.studio/">Avery Lin Studio</a>
  </div>
  <div class="result">
    <a class="result__a" href="/relative/only">Broken</a>
  </div>
  <div class="result"><span>no anchor</span></div>
</body></html>
"""


class TestDuckDuckGoSearchProvider:
    def test_parse_results_unwraps_redirect_links(self):
        from deep_dive.providers.duckduckgo import DuckDuckGoSearchProvider

        results = DuckDuckGoSearchProvider.parse_results(DDG_HTML, "Avery Lin")

        assert [r.url for r in results] == ["https://www.youtube.com/@avlinfilms", "https://avlin.studio/"]
        assert results[0].title == "Avery Lin - YouTube"
        assert results[0].snippet == "AI short films by Avery Lin"
        assert results[0].query == "Avery Lin"
        assert results[1].snippet == ""

    @pytest.mark.asyncio
    async def test_search_returns_parsed_results(self, mock_aiohttp_response):
        from deep_dive.providers.duckduckgo import DuckDuckGoSearchProvider

        mock_resp = mock_aiohttp_response(status=200, text=DDG_HTML)

        with patch("aiohttp.ClientSession.post", return_value=mock_resp):
            result = await DuckDuckGoSearchProvider().search("Avery Lin", limit=1)

        assert result.success
        assert len(result.value) == 1
        assert result.source == "duckduckgo_html"
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_rate_limit_is_a_warning(self, mock_aiohttp_response):
        from deep_dive.providers.duckduckgo import DuckDuckGoSearchProvider

        mock_resp = mock_aiohttp_response(status=429, text="slow down")

        with patch("aiohttp.ClientSession.post", return_value=mock_resp):
            result = await DuckDuckGoSearchProvider().search("Avery Lin")

        assert result.success
        assert result.value == []
        assert result.warnings == ["DuckDuckGo search rate-limited"]


class TestSerpApiSearchProvider:
    @pytest.mark.asyncio
    async def test_missing_key_is_a_warning(self):
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        with patch("aiohttp.ClientSession.get") as mock_get:
            result = await SerpApiSearchProvider().search("Avery Lin")

        mock_get.assert_not_called()
        assert result.success
        assert result.value == []
        assert result.warnings == ["SerpApi key missing; search skipped"]
        assert result.source == "serpapi"

    @pytest.mark.asyncio
    async def test_key_read_from_environment(self, monkeypatch):
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        monkeypatch.setenv("SERPAPI_API_KEY", "env-key")

        assert SerpApiSearchProvider().api_key == "env-key"

    @pytest.mark.asyncio
    async def test_organic_results_parsed(self, mock_aiohttp_response):
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        mock_resp = mock_aiohttp_response(
            json_data={
                "organic_results": [
                    {"title": "Avery Lin", "link": "https://x.com/averylin", "snippet": "AI films"},
                    {"title": "No link"},
                    "garbage",
                ]
            }
        )

        with patch("aiohttp.ClientSession.get", return_value=mock_resp) as mock_get:
            result = await SerpApiSearchProvider(api_key="test-key").search("Avery Lin", limit=5)

        assert result.success
        assert [r.url for r in result.value] == ["https://x.com/averylin"]
        assert result.source == "serpapi_google"
        params = mock_get.call_args.kwargs["params"]
        assert params["q"] == "Avery Lin"
        assert params["num"] == 5
        assert params["api_key"] == "test-key"

    @pytest.mark.asyncio
    async def test_quota_exceeded_is_a_warning(self, mock_aiohttp_response):
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        mock_resp = mock_aiohttp_response(json_data={"error": "Too many requests"}, status=429)

        with patch("aiohttp.ClientSession.get", return_value=mock_resp) as mock_get:
            result = await SerpApiSearchProvider(api_key="test-key").search("Avery Lin")

        assert mock_get.call_count == 1
        assert result.success
        assert result.value == []
        assert result.warnings == ["SerpApi search quota exceeded"]

    @pytest.mark.asyncio
    async def test_out_of_searches_payload_is_a_quota_warning(self, mock_aiohttp_response):
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        mock_resp = mock_aiohttp_response(json_data={"error": "Your account has run out of searches."})

        with patch("aiohttp.ClientSession.get", return_value=mock_resp):
            result = await SerpApiSearchProvider(api_key="test-key").search("Avery Lin")

        assert result.warnings == ["SerpApi search quota exceeded"]

    @pytest.mark.asyncio
    async def test_no_results_error_is_empty(self, mock_aiohttp_response):
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        mock_resp = mock_aiohttp_response(json_data={"error": "Google hasn't returned any results for this query."})

        with patch("aiohttp.ClientSession.get", return_value=mock_resp):
            result = await SerpApiSearchProvider(api_key="test-key").search("zzzz")

        assert result.success
        assert result.value == []
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_rejected_key_is_a_warning(self, mock_aiohttp_response):
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        mock_resp = mock_aiohttp_response(json_data={"error": "Invalid API key."}, status=401)

        with patch("aiohttp.ClientSession.get", return_value=mock_resp):
            result = await SerpApiSearchProvider(api_key="bad").search("Avery Lin")

        assert result.warnings[0].startswith("SerpApi authentication failed:")
        assert "Invalid API key." in result.warnings[0]


class TestBuildSearchProvider:
    def test_default_is_duckduckgo(self):
        from deep_dive.providers import build_search_provider

        assert build_search_provider().name == "duckduckgo"

    def test_serpapi_by_name(self):
        from deep_dive.providers import build_search_provider

        assert build_search_provider("SerpApi").name == "serpapi"
