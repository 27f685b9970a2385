"""
Pytest configuration and shared fixtures for the Deep Dive test suite.
"""

import asyncio
import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

# ── Event loop ───────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def event_loop_policy():
    return asyncio.DefaultEventLoopPolicy()


# ── Env setup ────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def set_test_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Set environment variables for tests to avoid polluting real data dirs."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_FORMAT", "console")
    monkeypatch.setenv("AI_PROVIDER", "none")
    monkeypatch.setenv("SEARCH_PROVIDER", "duckduckgo")
    # Unset real API keys so tests don't accidentally make live calls
    for key in [
        "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OPENROUTER_API_KEY", "SERPAPI_API_KEY",
    ]:
        monkeypatch.delenv(key, raising=False)


# ── Sample data fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def make_lead():
    """Factory for Lead objects; unsaved unless passed to a store."""
    def _make(name: str = "Shana Nielsen", **fields: Any):
        from deep_dive.database.models import Lead

        defaults: dict[str, Any] = {"handle": "shanalnielsen", "platform": "LinkedIn"}
        defaults.update(fields)
        return Lead(name=name, **defaults)
    return _make


@pytest.fixture
def run_context():
    """Factory for a fresh RunContext."""
    def _make(lead, limits=None):
        from deep_dive.engine.context import RunContext

        return RunContext(lead, limits)
    return _make


# ── Provider stubs ───────────────────────────────────────────────────────────

@pytest.fixture
def stub_completion():
    """
    Factory for a CompletionProvider stub.

    ``response`` may be a dict (returned for every call), a callable taking
    (system_prompt, user_prompt, schema), or None to simulate an outage.
    """
    def _make(response: Any = None):
        from deep_dive.providers.base import CompletionProvider, ProviderResult

        class StubCompletion(CompletionProvider):
            name = "stub"
            model = "stub-model"

            def __init__(self) -> None:
                self.calls: list[tuple[str, str, dict]] = []

            async def _complete(self, system_prompt, user_prompt, json_schema):
                self.calls.append((system_prompt, user_prompt, json_schema))
                value = response(system_prompt, user_prompt, json_schema) if callable(response) else response
                if value is None:
                    return ProviderResult.fail("stub unavailable")
                return ProviderResult.ok(value)

        return StubCompletion()
    return _make


@pytest.fixture
def stub_search():
    """Factory for a SearchProvider stub returning canned results per query."""
    def _make(results: dict[str, list[dict]] | None = None, warnings: list[str] | None = None,
              source: str | None = "stub_search"):
        from deep_dive.database.models import SearchResult
        from deep_dive.providers.base import ProviderResult, SearchProvider

        class StubSearch(SearchProvider):
            name = "stub_search"

            def __init__(self) -> None:
                self.queries: list[str] = []

            async def _search(self, query, limit):
                self.queries.append(query)
                rows = (results or {}).get(query, (results or {}).get("*", []))
                return ProviderResult.ok(
                    [SearchResult(query=query, **row) for row in rows],
                    warnings=list(warnings or []),
                    source=source,
                )

        return StubSearch()
    return _make


@pytest.fixture
def stub_fetcher():
    """
    Factory for a ProfileFetcher stub.

    ``pages`` maps URL -> snapshot fields; ``page_for`` computes fields for any
    URL. URLs with no page fail like an unreachable profile.
    """
    def _make(pages: dict[str, dict] | None = None, page_for=None):
        from deep_dive.database.models import ProfileSnapshot
        from deep_dive.providers.base import ProfileFetcher, ProviderResult

        class StubFetcher(ProfileFetcher):
            name = "stub_fetcher"

            def __init__(self) -> None:
                self.fetched: list[tuple[str, str, bool]] = []

            async def _fetch(self, url, channel_type, include_about):
                self.fetched.append((url, channel_type, include_about))
                fields = page_for(url) if page_for else (pages or {}).get(url)
                if fields is None:
                    return ProviderResult.fail(f"no page for {url}")
                return ProviderResult.ok(
                    ProfileSnapshot(url=url, channel_type=channel_type, **fields)
                )

        return StubFetcher()
    return _make


@pytest.fixture
def mock_aiohttp_response():
    """Factory for mocking aiohttp responses."""
    def _make_response(json_data: dict | None = None, status: int = 200, text: str | None = None):
        mock = AsyncMock()
        mock.status = status
        mock.json = AsyncMock(return_value=json_data or {})
        mock.text = AsyncMock(return_value=text if text is not None else json.dumps(json_data or {}))
        mock.__aenter__ = AsyncMock(return_value=mock)
        mock.__aexit__ = AsyncMock(return_value=None)
        return mock
    return _make_response


# ── Database fixtures ────────────────────────────────────────────────────────

@pytest.fixture
def memory_store():
    from deep_dive.database.store import MemoryLeadStore

    return MemoryLeadStore()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path):
    """SQLite lead store backed by a temp file."""
    from deep_dive.database.sqlite_store import SQLiteLeadStore

    store = SQLiteLeadStore(db_path=tmp_path / "test_leads.db")
    await store.connect()
    yield store
    await store.disconnect()
