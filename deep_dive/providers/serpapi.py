"""
SerpApi-backed Google search provider.

Requires SERPAPI_API_KEY. A missing key, exhausted quota or rejected key is
reported as a warning on an empty result; the engine keeps going with
whatever other queries return.
"""

from __future__ import annotations

from typing import Any

import aiohttp
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from deep_dive.core.config import get_module_setting, settings
from deep_dive.core.exceptions import APIError, AuthenticationError, RateLimitError
from deep_dive.core.logging import get_logger
from deep_dive.database.models import SearchResult
from deep_dive.providers.base import ProviderResult, SearchProvider

logger = get_logger(__name__)

_SERPAPI_URL = "https://serpapi.com/search.json"


def _is_transient(exc: BaseException) -> bool:
    """Network errors and unexpected statuses are retried; quota and auth errors are not."""
    if isinstance(exc, (RateLimitError, AuthenticationError)):
        return False
    return isinstance(exc, (aiohttp.ClientError, APIError))


class SerpApiSearchProvider(SearchProvider):
    """Google organic results through SerpApi."""

    name = "serpapi"

    def __init__(self, api_key: str | None = None, timeout_seconds: int | None = None) -> None:
        self._api_key = api_key
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds

    @property
    def api_key(self) -> str | None:
        if self._api_key:
            return self._api_key
        secret = settings.serpapi_api_key
        return secret.get_secret_value().strip() or None if secret else None

    async def _search(self, query: str, limit: int) -> ProviderResult[list[SearchResult]]:
        api_key = self.api_key
        if not api_key:
            return ProviderResult.ok(
                [],
                warnings=["SerpApi key missing; search skipped"],
                source="serpapi",
            )

        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        ) as session:
            try:
                payload = await self._fetch_page(session, api_key, query, limit)
            except RateLimitError:
                return ProviderResult.ok(
                    [], warnings=["SerpApi search quota exceeded"], source="serpapi"
                )
            except AuthenticationError as e:
                return ProviderResult.ok(
                    [], warnings=[f"SerpApi authentication failed: {e}"], source="serpapi"
                )

        results = self.parse_results(payload, query)[:limit]
        logger.debug("serpapi_search_complete", query=query, results=len(results))
        return ProviderResult.ok(results, source="serpapi_google")

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _fetch_page(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        query: str,
        num: int,
    ) -> dict[str, Any]:
        """Fetch a single page of SerpApi Google results."""
        params: dict[str, str | int] = {
            "engine": "google",
            "api_key": api_key,
            "q": query,
            "num": num,
        }
        location = settings.serpapi_location or get_module_setting(
            "search", "serpapi", "location", None
        )
        if location:
            params["location"] = str(location)
        for key in ("gl", "hl", "google_domain"):
            value = get_module_setting("search", "serpapi", key, None)
            if value:
                params[key] = str(value)

        endpoint = settings.serpapi_base_url or _SERPAPI_URL
        logger.debug("serpapi_fetch", query=query, num=num)

        async with session.get(endpoint, params=params) as resp:
            payload: Any
            try:
                payload = await resp.json(content_type=None)
            except (aiohttp.ContentTypeError, ValueError):
                payload = await resp.text()

            if resp.status == 429:
                raise RateLimitError("SerpApi")
            if resp.status in {401, 403}:
                raise AuthenticationError("SerpApi", self._extract_error_message(payload))
            if resp.status != 200:
                raise APIError("SerpApi", resp.status, self._extract_error_message(payload))

        if isinstance(payload, dict) and payload.get("error"):
            message = self._extract_error_message(payload)
            if "returned any results" in message.lower():
                return {}
            if "run out of searches" in message.lower():
                raise RateLimitError("SerpApi")
            raise APIError("SerpApi", 502, message)

        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def parse_results(payload: dict[str, Any], query: str = "") -> list[SearchResult]:
        results: list[SearchResult] = []
        for item in payload.get("organic_results", []) or []:
            if not isinstance(item, dict) or not item.get("link"):
                continue
            results.append(
                SearchResult(
                    title=str(item.get("title", "")),
                    url=str(item["link"]),
                    snippet=str(item.get("snippet", "")),
                    query=query,
                )
            )
        return results

    @staticmethod
    def _extract_error_message(payload: Any) -> str:
        if isinstance(payload, dict):
            message = payload.get("error") or payload.get("message")
            if message:
                return str(message)
        return str(payload)[:200]
