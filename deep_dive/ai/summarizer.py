"""
Outreach summary for a finished deep dive.

Builds numbered evidence lines from the scraped dossiers (or the raw
search results when nothing was scraped) and asks the completion provider
for a structured summary. Any failure yields a deterministic summary
naming the profile types that were found.
"""

from __future__ import annotations

from typing import Any

from deep_dive.ai.identity_validator import normalize_confidence
from deep_dive.ai.prompts import SUMMARY_SYSTEM_PROMPT, SUMMARY_USER_PROMPT, summary_schema
from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.logging import get_logger
from deep_dive.database.models import DeepDiveSummary, Dossier, Lead, SearchResult, truncate
from deep_dive.engine.candidates import CandidateMap
from deep_dive.providers.base import CompletionProvider

logger = get_logger(__name__)

MAX_EVIDENCE_LINES = 10


def evidence_lines(dossiers: list[Dossier], search_results: list[SearchResult]) -> list[str]:
    lines: list[str] = []
    for index, dossier in enumerate(dossiers[:MAX_EVIDENCE_LINES], start=1):
        line = f"{index}. [{dossier.profile_type}] {dossier.url}"
        if dossier.title:
            line += f" | {dossier.title}"
        if dossier.description:
            line += f" | {dossier.description}"
        if dossier.recent_posts:
            line += f" | Recent posts: {' || '.join(dossier.recent_posts[:2])}"
        if dossier.about_text:
            line += f" | About: {truncate(dossier.about_text, 260)}"
        lines.append(line)

    if not lines:
        for index, result in enumerate(search_results[:MAX_EVIDENCE_LINES], start=1):
            lines.append(f"{index}. {result.title} | {result.url} | {result.snippet}")
    return lines


def fallback_summary(candidates: CandidateMap, max_highlights: int = 6) -> DeepDiveSummary:
    found = [t.value for t in candidates.non_empty_types()]
    return DeepDiveSummary(
        summary=(
            f"Found profile signals across: {', '.join(found)}."
            if found
            else "No reliable profiles found."
        ),
        outreach_angle="Reference one concrete piece of their recent public work.",
        next_step="Send one short message with a single CTA.",
        confidence=0.35,
        highlights=[f"Found {key} profile." for key in found[:max_highlights]],
    )


def normalize_highlights(value: Any, fallback: list[str], limit: int = 6) -> list[str]:
    items = value if isinstance(value, list) else ([value] if value else [])
    highlights = [str(item).strip() for item in items if item is not None and str(item).strip()]
    return highlights[:limit] or fallback


class Summarizer:
    def __init__(self, completion: CompletionProvider, limits: DeepDiveLimits | None = None) -> None:
        self.completion = completion
        self.limits = limits or DeepDiveLimits()

    async def summarize(
        self,
        lead: Lead,
        search_results: list[SearchResult],
        dossiers: list[Dossier],
        candidates: CandidateMap,
    ) -> DeepDiveSummary:
        fallback = fallback_summary(candidates, self.limits.max_highlights)
        lines = evidence_lines(dossiers, search_results)
        if not lines:
            return fallback

        prompt = SUMMARY_USER_PROMPT.format(
            name=lead.name,
            platform=lead.platform or "",
            handle=lead.handle or "",
            website=lead.website or "",
            role=lead.role or "",
            notes=lead.notes or "",
            category=lead.category or "",
            evidence="\n".join(lines),
        )
        result = await self.completion.complete(
            SUMMARY_SYSTEM_PROMPT, prompt, summary_schema(self.limits.max_highlights)
        )
        if not result.success or not result.value:
            logger.info("summary_fallback", lead_id=lead.id, error=result.error)
            return fallback

        data = result.value
        return DeepDiveSummary(
            summary=str(data.get("summary") or "").strip() or fallback.summary,
            outreach_angle=str(data.get("outreach_angle") or "").strip() or fallback.outreach_angle,
            next_step=str(data.get("next_step") or "").strip() or fallback.next_step,
            confidence=normalize_confidence(data.get("confidence")),
            highlights=normalize_highlights(
                data.get("highlights"), fallback.highlights, self.limits.max_highlights
            ),
        )
