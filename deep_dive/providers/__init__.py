"""
Provider registry.

Builds the configured search, fetch and completion providers from settings.
The engine never constructs providers itself; they are injected into
DeepDiveService so tests can pass stubs.
"""

from deep_dive.core.config import settings
from deep_dive.core.logging import get_logger
from deep_dive.providers.base import (
    CompletionProvider,
    NullCompletionProvider,
    ProfileFetcher,
    ProviderResult,
    SearchProvider,
)

logger = get_logger(__name__)

__all__ = [
    "CompletionProvider",
    "NullCompletionProvider",
    "ProfileFetcher",
    "ProviderResult",
    "SearchProvider",
    "build_completion_provider",
    "build_profile_fetcher",
    "build_search_provider",
]


def build_search_provider(name: str | None = None) -> SearchProvider:
    provider = (name or settings.search_provider).lower()
    if provider == "serpapi":
        from deep_dive.providers.serpapi import SerpApiSearchProvider

        return SerpApiSearchProvider()

    from deep_dive.providers.duckduckgo import DuckDuckGoSearchProvider

    return DuckDuckGoSearchProvider()


def build_profile_fetcher() -> ProfileFetcher:
    from deep_dive.providers.http_fetcher import HttpProfileFetcher

    return HttpProfileFetcher()


def build_completion_provider(name: str | None = None) -> CompletionProvider:
    """
    Completion provider for the configured backend.

    Returns NullCompletionProvider when AI is disabled, so every caller
    takes its deterministic fallback.
    """
    provider = (name or settings.ai_provider).lower()
    if provider == "none":
        logger.info("ai_disabled")
        return NullCompletionProvider()

    from deep_dive.providers.llm import LLMCompletionProvider

    return LLMCompletionProvider(provider=provider)
