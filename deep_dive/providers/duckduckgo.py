"""
DuckDuckGo HTML search provider.

Scrapes the HTML endpoint (html.duckduckgo.com) with BeautifulSoup for
organic results. No API key required. Rate limiting and blocking are
reported as warnings so the engine can surface them without failing.
"""

from __future__ import annotations

import re
from urllib.parse import unquote

import aiohttp
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from deep_dive.core.config import get_module_setting, settings
from deep_dive.core.exceptions import APIError
from deep_dive.core.logging import get_logger
from deep_dive.database.models import SearchResult
from deep_dive.providers.base import ProviderResult, SearchProvider

logger = get_logger(__name__)

_DDG_HTML_URL = "https://html.duckduckgo.com/html/"
_UDDG_PARAM = re.compile(r"[?&]uddg=([^&]+)")


class DuckDuckGoSearchProvider(SearchProvider):
    """DuckDuckGo HTML search scraper."""

    name = "duckduckgo"

    def __init__(self, timeout_seconds: int | None = None) -> None:
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self.region = get_module_setting("search", "duckduckgo", "region", "us-en")

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": settings.user_agent,
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def _search(self, query: str, limit: int) -> ProviderResult[list[SearchResult]]:
        warnings: list[str] = []
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            headers=self._headers(),
        ) as session:
            html = await self._fetch_html(session, query, warnings)

        results = self.parse_results(html, query)[:limit] if html else []
        logger.debug("duckduckgo_search_complete", query=query, results=len(results))
        return ProviderResult.ok(results, warnings=warnings, source="duckduckgo_html")

    @retry(
        retry=retry_if_exception_type((aiohttp.ClientError, APIError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=3, max=15),
        reraise=True,
    )
    async def _fetch_html(
        self,
        session: aiohttp.ClientSession,
        query: str,
        warnings: list[str],
    ) -> str:
        params = {"q": query, "b": "", "kl": self.region}

        logger.debug("ddg_html_fetch", query=query)
        async with session.post(_DDG_HTML_URL, data=params) as resp:
            if resp.status == 429:
                warnings.append("DuckDuckGo search rate-limited")
                return ""
            if resp.status == 403:
                warnings.append("DuckDuckGo search blocked (403)")
                return ""
            if resp.status != 200:
                raise APIError("DuckDuckGo", resp.status, await resp.text())
            return await resp.text()

    @classmethod
    def parse_results(cls, html: str, query: str = "") -> list[SearchResult]:
        """Extract organic results from a DuckDuckGo HTML results page."""
        soup = BeautifulSoup(html, "html.parser")
        results: list[SearchResult] = []

        for result_div in soup.select("div.result"):
            title_tag = result_div.select_one("a.result__a")
            snippet_tag = result_div.select_one(".result__snippet")
            if not title_tag:
                continue

            title = title_tag.get_text(strip=True)
            url = cls._extract_url(str(title_tag.get("href", "")))
            snippet = snippet_tag.get_text(" ", strip=True) if snippet_tag else ""

            if title and url:
                results.append(SearchResult(title=title, url=url, snippet=snippet, query=query))

        return results

    @staticmethod
    def _extract_url(href: str) -> str:
        """
        Extract the destination URL from a DuckDuckGo redirect link.

        DuckDuckGo wraps outbound URLs in: //duckduckgo.com/l/?uddg=<encoded_url>&...
        """
        if not href:
            return ""
        match = _UDDG_PARAM.search(href)
        if match:
            return unquote(match.group(1))
        if href.startswith(("http://", "https://")):
            return href
        return ""
