"""Sequential multi-query search with run-wide URL de-duplication."""

from __future__ import annotations

from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.logging import get_logger
from deep_dive.database.models import SearchResult
from deep_dive.engine.context import RunContext
from deep_dive.providers.base import SearchProvider
from deep_dive.utils.urls import normalize_url

logger = get_logger(__name__)


class SearchAggregator:
    """
    Runs planned queries one at a time and merges the hits.

    A failed or empty provider response counts as "no results" for that
    query; the provider's warnings and source are recorded on the run so
    they can be shown to the user later.
    """

    def __init__(self, provider: SearchProvider, limits: DeepDiveLimits | None = None) -> None:
        self.provider = provider
        self.limits = limits or DeepDiveLimits()

    async def collect(self, queries: list[str], run: RunContext) -> list[SearchResult]:
        seen: set[str] = set()
        results: list[SearchResult] = []

        for query in queries:
            response = await self.provider.search(query, limit=self.limits.search_results_per_query)
            run.record_search_diagnostics(query, response.warnings, response.source)
            if not response.success:
                logger.info("search_query_failed", query=query, error=response.error)
                continue

            for result in response.value or []:
                normalized = normalize_url(result.url)
                if not normalized or normalized in seen:
                    continue
                seen.add(normalized)
                results.append(result)
                if len(results) >= self.limits.max_search_results:
                    break
            if len(results) >= self.limits.max_search_results:
                break

        logger.info("search_collected", queries=len(queries), results=len(results))
        return results
