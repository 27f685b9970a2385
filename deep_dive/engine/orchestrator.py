"""
Deep dive orchestrator — one sequential unit of work per lead.

Run lifecycle:
1. Plan search queries (LLM, or deterministic fallback)
2. Collect de-duplicated search results
3. Seed the candidate map (handle, website, existing profiles, history, search hits)
4. Sync engine-owned social profiles
5. Expand the profile graph in bounded waves, syncing after each productive wave
6. Summarize, backfill website/email, and persist the result on the lead

Providers are injected; nothing in here knows about HTTP or a specific LLM.
"""

from __future__ import annotations

import re
import time
from typing import Any

from deep_dive.ai.identity_validator import IdentityValidator
from deep_dive.ai.query_planner import QueryPlanner
from deep_dive.ai.summarizer import Summarizer
from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.constants import DeepDiveStatus, ProfileType
from deep_dive.core.logging import get_audit_logger, get_logger
from deep_dive.database.models import (
    DeepDiveResult,
    DiscoveredEmail,
    Dossier,
    Lead,
    truncate,
    utc_now,
)
from deep_dive.database.store import LeadStore
from deep_dive.engine.context import RunContext
from deep_dive.engine.discovery import ProfileDiscovery
from deep_dive.engine.expansion import GraphExpander
from deep_dive.engine.search import SearchAggregator
from deep_dive.engine.sync import SocialProfileSync
from deep_dive.providers.base import CompletionProvider, ProfileFetcher, SearchProvider
from deep_dive.utils.identity_tokens import IdentityClueExtractor
from deep_dive.utils.urls import UrlExpander, normalize_url

logger = get_logger(__name__)
audit_logger = get_audit_logger()

_EMAIL_RE = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
MAX_DISCOVERED_EMAILS = 20
ERROR_MESSAGE_MAX_LEN = 1000


def extract_discovered_emails(dossiers: list[Dossier]) -> list[DiscoveredEmail]:
    """Valid, lowercased, unique emails across dossiers, tagged with the page they came from."""
    seen: set[str] = set()
    findings: list[DiscoveredEmail] = []
    for dossier in dossiers:
        for candidate in dossier.emails:
            email = str(candidate or "").strip().lower()
            if not email or not _EMAIL_RE.match(email) or email in seen:
                continue
            seen.add(email)
            findings.append(DiscoveredEmail(email=email, source=dossier.url or None))
    return findings[:MAX_DISCOVERED_EMAILS]


class DeepDiveService:
    """
    Wires the engine components around injected providers.

    Error isolation: provider failures fall back inside each component and
    never abort the run. Only store errors propagate to the caller.
    """

    def __init__(
        self,
        store: LeadStore,
        search: SearchProvider,
        fetcher: ProfileFetcher,
        completion: CompletionProvider,
        limits: DeepDiveLimits | None = None,
        expander: UrlExpander | None = None,
    ) -> None:
        self.store = store
        self.completion = completion
        self.limits = limits or DeepDiveLimits.from_settings()

        self.planner = QueryPlanner(completion, store, self.limits)
        self.search = SearchAggregator(search, self.limits)
        self.validator = IdentityValidator(
            completion,
            IdentityClueExtractor(store, self.limits.max_identity_clue_tokens),
            self.limits,
        )
        self.discovery = ProfileDiscovery(self.validator, store, self.limits, expander)
        self.sync = SocialProfileSync(store)
        self.graph = GraphExpander(fetcher, self.discovery, self.sync, self.limits)
        self.summarizer = Summarizer(completion, self.limits)

    @classmethod
    def from_settings(
        cls,
        store: LeadStore,
        completion: CompletionProvider | None = None,
    ) -> DeepDiveService:
        """Service using the providers configured in settings / config.yaml."""
        from deep_dive.providers import (
            build_completion_provider,
            build_profile_fetcher,
            build_search_provider,
        )

        return cls(
            store,
            build_search_provider(),
            build_profile_fetcher(),
            completion or build_completion_provider(),
        )

    async def run(self, lead: Lead) -> DeepDiveResult:
        run = RunContext(lead, self.limits)
        start = time.monotonic()
        logger.info("deep_dive_started", lead_id=lead.id, run_id=run.run_id)

        queries = await self.planner.plan(lead)
        search_results = await self.search.collect(queries, run)
        candidates = await self.discovery.seed(lead, search_results, run)

        await self.sync.sync(lead, candidates, run)
        dossiers = await self.graph.expand(lead, candidates, run)
        emails = extract_discovered_emails(dossiers)
        summary = await self.summarizer.summarize(lead, search_results, dossiers, candidates)

        result = DeepDiveResult(
            provider=self.completion.name,
            model=self.completion.model,
            queries=queries,
            profiles=candidates.as_dict(),
            profile_dossiers=dossiers,
            summary=summary.summary,
            outreach_angle=summary.outreach_angle,
            next_step=summary.next_step,
            confidence=summary.confidence,
            highlights=summary.highlights,
            emails_found=emails,
            search_warnings=run.surfaced_warnings(),
            search_sources=run.unique_sources(),
            search_results=search_results,
        )

        if not (lead.website or "").strip():
            websites = candidates.urls(ProfileType.WEBSITE)
            lead.website = normalize_url(websites[0]) if websites else lead.website
        if not (lead.email or "").strip() and emails:
            lead.email = emails[0].email

        data: dict[str, Any] = dict(lead.deep_dive_data or {})
        data.pop("first_contact_suggestion", None)
        data.update(result.to_data())

        lead.deep_dive_data = data
        lead.deep_dive_status = DeepDiveStatus.COMPLETE
        lead.deep_dive_error = None
        lead.deep_dive_last_run_at = utc_now()
        await self.store.save_lead(lead)

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "deep_dive_complete",
            lead_id=lead.id,
            run_id=run.run_id,
            profiles=len(candidates),
            dossiers=len(dossiers),
            emails=len(emails),
            duration_ms=duration_ms,
        )
        audit_logger.info(
            "deep_dive_complete",
            lead_id=lead.id,
            run_id=run.run_id,
            profiles=candidates.as_dict(),
            provider=result.provider,
        )
        return result


async def run_deep_dive_job(
    lead_id: int,
    store: LeadStore,
    service: DeepDiveService | None = None,
) -> DeepDiveResult | None:
    """
    Job entry point: mark the lead running, run the service, record failure.

    A lead that no longer exists is logged and skipped. Any other exception
    is recorded on the lead as ``failed`` and re-raised for the job system.
    """
    lead: Lead | None = None
    try:
        lead = await store.get_lead(lead_id)
        if lead is None:
            logger.warning("deep_dive_lead_missing", lead_id=lead_id)
            return None

        lead.deep_dive_status = DeepDiveStatus.RUNNING
        lead.deep_dive_error = None
        await store.save_lead(lead)
        logger.info("deep_dive_job_started", lead_id=lead.id, org_id=lead.organization_id)
        audit_logger.info("deep_dive_job_started", lead_id=lead.id)

        service = service or DeepDiveService.from_settings(store)
        return await service.run(lead)
    except Exception as e:
        logger.error("deep_dive_job_failed", lead_id=lead_id, error=f"{type(e).__name__}: {e}")
        audit_logger.info("deep_dive_job_failed", lead_id=lead_id, error_type=type(e).__name__)
        if lead is not None:
            lead.deep_dive_status = DeepDiveStatus.FAILED
            lead.deep_dive_error = truncate(f"{type(e).__name__}: {e}", ERROR_MESSAGE_MAX_LEN)
            lead.deep_dive_last_run_at = utc_now()
            await store.save_lead(lead)
        raise
