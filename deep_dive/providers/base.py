"""
Provider interfaces for the three external capabilities the engine uses.

- SearchProvider:     search(query, limit)                -> list[SearchResult]
- ProfileFetcher:     fetch(url, channel_type, about)     -> ProfileSnapshot | None
- CompletionProvider: complete(system, user, json_schema) -> dict | None

Every public method returns a ProviderResult instead of raising. Concrete
providers implement the protected _search/_fetch/_complete hooks and may
raise freely; the base class converts exceptions into failed results so
each engine call site only has to branch on ``result.success``.
"""

from __future__ import annotations

import abc
import time
from typing import Any, Generic, TypeVar

from deep_dive.core.logging import get_logger
from deep_dive.database.models import ProfileSnapshot, SearchResult

logger = get_logger(__name__)

T = TypeVar("T")


class ProviderResult(Generic[T]):
    """
    Standardised return value from every provider call.

    ``value`` is only meaningful when ``success`` is True. ``warnings`` carry
    non-fatal diagnostics (e.g. "search quota exceeded") that the engine
    surfaces to users; ``source`` names the backend that answered.
    """

    def __init__(
        self,
        *,
        success: bool,
        value: T | None = None,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
        source: str | None = None,
        provider_name: str = "",
        execution_time_ms: int = 0,
    ) -> None:
        self.success = success
        self.value = value
        self.errors = list(errors or [])
        self.warnings = list(warnings or [])
        self.source = source
        self.provider_name = provider_name
        self.execution_time_ms = execution_time_ms

    @classmethod
    def ok(
        cls,
        value: T,
        warnings: list[str] | None = None,
        **kwargs: Any,
    ) -> ProviderResult[T]:
        """Construct a successful result."""
        return cls(success=True, value=value, warnings=warnings or [], **kwargs)

    @classmethod
    def fail(cls, *errors: str, **kwargs: Any) -> ProviderResult[T]:
        """Construct a failed result."""
        return cls(success=False, errors=list(errors), **kwargs)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def error(self) -> str | None:
        return self.errors[0] if self.errors else None

    def __repr__(self) -> str:
        state = "ok" if self.success else f"fail({self.error})"
        return f"ProviderResult<{self.provider_name or '?'}:{state}>"


class _TimedCall:
    def __init__(self) -> None:
        self._start = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)


class SearchProvider(abc.ABC):
    """Web search backend. Queries are issued one at a time by the engine."""

    name: str = "search"

    async def search(self, query: str, limit: int = 10) -> ProviderResult[list[SearchResult]]:
        timer = _TimedCall()
        try:
            result = await self._search(query, limit)
        except Exception as e:
            logger.warning("search_provider_failed", provider=self.name, query=query, error=str(e))
            return ProviderResult.fail(
                f"{type(e).__name__}: {e}",
                provider_name=self.name,
                execution_time_ms=timer.elapsed_ms,
            )
        result.provider_name = result.provider_name or self.name
        result.execution_time_ms = timer.elapsed_ms
        if result.success and result.value is not None:
            result.value = result.value[:limit]
        return result

    @abc.abstractmethod
    async def _search(self, query: str, limit: int) -> ProviderResult[list[SearchResult]]:
        """Run one query. May raise; the caller converts errors into a failed result."""


class ProfileFetcher(abc.ABC):
    """Fetches one profile or website page and extracts text, emails and links."""

    name: str = "fetcher"

    async def fetch(
        self,
        url: str,
        channel_type: str,
        include_about: bool = False,
    ) -> ProviderResult[ProfileSnapshot]:
        timer = _TimedCall()
        try:
            result = await self._fetch(url, channel_type, include_about)
        except Exception as e:
            logger.warning("profile_fetch_failed", provider=self.name, url=url, error=str(e))
            return ProviderResult.fail(
                f"{type(e).__name__}: {e}",
                provider_name=self.name,
                execution_time_ms=timer.elapsed_ms,
            )
        result.provider_name = result.provider_name or self.name
        result.execution_time_ms = timer.elapsed_ms
        return result

    @abc.abstractmethod
    async def _fetch(
        self,
        url: str,
        channel_type: str,
        include_about: bool,
    ) -> ProviderResult[ProfileSnapshot]: ...


class CompletionProvider(abc.ABC):
    """Structured completion: returns JSON matching a caller-supplied schema."""

    name: str = "completion"
    model: str | None = None

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, Any],
    ) -> ProviderResult[dict[str, Any]]:
        timer = _TimedCall()
        try:
            result = await self._complete(system_prompt, user_prompt, json_schema)
        except Exception as e:
            logger.warning("completion_failed", provider=self.name, error=str(e))
            return ProviderResult.fail(
                f"{type(e).__name__}: {e}",
                provider_name=self.name,
                execution_time_ms=timer.elapsed_ms,
            )
        if result.success and not isinstance(result.value, dict):
            return ProviderResult.fail(
                "completion returned no JSON object",
                provider_name=self.name,
                execution_time_ms=timer.elapsed_ms,
            )
        result.provider_name = result.provider_name or self.name
        result.execution_time_ms = timer.elapsed_ms
        return result

    @abc.abstractmethod
    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, Any],
    ) -> ProviderResult[dict[str, Any]]: ...


class NullCompletionProvider(CompletionProvider):
    """Used when AI is disabled; every call fails so callers take their fallback."""

    name = "none"

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, Any],
    ) -> ProviderResult[dict[str, Any]]:
        return ProviderResult.fail("AI provider disabled", provider_name=self.name)
