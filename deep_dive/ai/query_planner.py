"""
Search query planning for a deep dive run.

The completion provider gets the lead's profile plus its most recent
signals, communications and known profiles, and proposes targeted queries.
When it is unavailable or returns nothing usable, a deterministic set of
name/handle/platform queries is built instead.

Usage:
    planner = QueryPlanner(completion, store, limits)
    queries = await planner.plan(lead)
"""

from __future__ import annotations

from typing import Any

from deep_dive.ai.prompts import (
    QUERY_PLANNER_SYSTEM_PROMPT,
    QUERY_PLANNER_USER_PROMPT,
    query_planner_schema,
)
from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.logging import get_logger
from deep_dive.database.models import Lead, truncate
from deep_dive.providers.base import CompletionProvider

logger = get_logger(__name__)

SIGNAL_HINT_LIMIT = 8
COMMUNICATION_HINT_LIMIT = 6
PROFILE_HINT_LIMIT = 12


def normalize_queries(raw_queries: Any, limit: int = 10) -> list[str]:
    """Squish whitespace, drop blanks and duplicates, keep the first ``limit``."""
    if isinstance(raw_queries, str) or not isinstance(raw_queries, (list, tuple)):
        raw_queries = [raw_queries] if raw_queries else []

    queries: list[str] = []
    for raw in raw_queries:
        if raw is None:
            continue
        query = " ".join(str(raw).split())
        if query and query not in queries:
            queries.append(query)
    return queries[:limit]


def fallback_queries(lead: Lead, limit: int = 10) -> list[str]:
    """Deterministic queries from the lead's name, handle, role, country and platform."""
    name = (lead.name or "").strip()
    handle = (lead.handle or "").strip().removeprefix("@")
    role = (lead.role or "").strip()
    platform = (lead.platform or "").strip()

    base = " ".join(
        part for part in (f'"{name}"' if name else "", handle, role, (lead.country or "").strip()) if part
    )
    queries: list[str | None] = [
        base,
        f"{name} official website",
        f"{name} profile",
        f"{name} {platform} profile" if platform else None,
    ]
    if handle:
        queries.extend(
            [
                f"{name} {handle} site:linkedin.com",
                f"{name} {handle} site:x.com",
                f"{name} {handle} site:instagram.com",
                f"{name} {handle} site:youtube.com",
                f"{name} {handle} linktree OR beacons OR carrd OR bio.site",
            ]
        )
    queries.extend(
        [
            f"{name} portfolio",
            f"{name} contact",
            f"{name} interviews",
            f"{name} {role}" if role else None,
        ]
    )
    return normalize_queries(queries, limit)


class QueryPlanner:
    """LLM-first query planning with a deterministic fallback."""

    def __init__(
        self,
        completion: CompletionProvider,
        store: Any = None,
        limits: DeepDiveLimits | None = None,
    ) -> None:
        self.completion = completion
        self.store = store
        self.limits = limits or DeepDiveLimits()

    async def plan(self, lead: Lead) -> list[str]:
        planned = await self._plan_with_llm(lead)
        if planned:
            logger.info("queries_planned", lead_id=lead.id, strategy="llm", count=len(planned))
            return planned

        queries = fallback_queries(lead, self.limits.max_query_count)
        logger.info("queries_planned", lead_id=lead.id, strategy="fallback", count=len(queries))
        return queries

    async def _plan_with_llm(self, lead: Lead) -> list[str]:
        prompt = QUERY_PLANNER_USER_PROMPT.format(
            name=lead.name,
            platform=lead.platform or "",
            handle=lead.handle or "",
            role=lead.role or "",
            country=lead.country or "",
            notes=truncate(lead.notes, 500),
            category=lead.category or "",
            **await self._hints(lead),
        )
        result = await self.completion.complete(
            QUERY_PLANNER_SYSTEM_PROMPT,
            prompt,
            query_planner_schema(self.limits.max_query_count),
        )
        if not result.success or not result.value:
            logger.debug("query_planning_fallback", lead_id=lead.id, error=result.error)
            return []
        return normalize_queries(result.value.get("queries"), self.limits.max_query_count)

    async def _hints(self, lead: Lead) -> dict[str, str]:
        if self.store is None or lead.id is None:
            return {"signal_hints": "none", "profile_hints": "none", "communication_hints": "none"}

        signals = await self.store.list_signals(lead.id, SIGNAL_HINT_LIMIT)
        communications = await self.store.list_communications(lead.id, COMMUNICATION_HINT_LIMIT)
        profiles = (await self.store.list_social_profiles(lead.id))[:PROFILE_HINT_LIMIT]

        signal_hints = [
            _join_hint(s.source, s.author_name, s.author_handle, s.title, truncate(s.content, 180))
            for s in signals
        ]
        communication_hints = [
            _join_hint(c.channel, c.summary, truncate(c.notes, 160)) for c in communications
        ]
        profile_hints = [_join_hint(p.profile_type, p.handle, p.url) for p in profiles]
        return {
            "signal_hints": "\n".join(signal_hints) or "none",
            "profile_hints": "\n".join(profile_hints) or "none",
            "communication_hints": "\n".join(communication_hints) or "none",
        }


def _join_hint(*parts: str | None) -> str:
    return " | ".join(part for part in parts if part)
