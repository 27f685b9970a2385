"""
Profile link discovery: seeding the candidate map and growing it from dossiers.

Every candidate goes through the same pipeline in append():
normalize -> expand short links -> classify -> canonicalize -> validate
identity -> try_insert into the bounded CandidateMap. Anything that fails
a step is dropped silently; a bad URL never aborts the run.
"""

from __future__ import annotations

from typing import Any

from deep_dive.ai.identity_validator import IdentityValidator
from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.constants import (
    DEEP_DIVE_SOURCE,
    SOCIAL_PROFILE_TYPES,
    CandidateSource,
    IdentityStrategy,
    IdentityVerdict,
    ProfileType,
)
from deep_dive.core.logging import get_logger
from deep_dive.database.models import Dossier, IdentityDecision, Lead, SearchResult
from deep_dive.engine.candidates import CandidateMap
from deep_dive.engine.context import RunContext
from deep_dive.utils.urls import (
    UrlExpander,
    canonicalize,
    classify,
    handle_url,
    is_link_aggregator,
    normalize_url,
    same_host,
    seed_website,
)

logger = get_logger(__name__)

EXISTING_PROFILE_LIMIT = 50
SIGNAL_SEED_LIMIT = 30
COMMUNICATION_SEED_LIMIT = 30


def relevant_discovered_link(base_url: str, candidate_url: str) -> bool:
    """
    Whether a link found on ``base_url`` is worth validating.

    Social profiles and link hubs always are. Other websites only when the
    page they were found on is a hub, or when they stay on the same host.
    """
    profile_type = classify(candidate_url)
    if profile_type is None or profile_type == ProfileType.OTHER:
        return False
    if is_link_aggregator(candidate_url) or profile_type in SOCIAL_PROFILE_TYPES:
        return True
    if is_link_aggregator(base_url):
        return True
    return same_host(base_url, candidate_url)


def user_seed_decision() -> IdentityDecision:
    return IdentityDecision(
        accepted=True,
        decision=IdentityVerdict.ACCEPT,
        confidence=1.0,
        reason="User-provided website seed.",
        strategy=IdentityStrategy.USER_SEED,
    )


class ProfileDiscovery:
    """
    Builds and expands the candidate map for one lead.

    Usage:
        discovery = ProfileDiscovery(validator, store, limits)
        candidates = await discovery.seed(lead, search_results, run)
        added = await discovery.expand(lead, candidates, wave_dossiers, run)
    """

    def __init__(
        self,
        validator: IdentityValidator,
        store: Any = None,
        limits: DeepDiveLimits | None = None,
        expander: UrlExpander | None = None,
    ) -> None:
        self.validator = validator
        self.store = store
        self.limits = limits or DeepDiveLimits()
        self.expander = expander or UrlExpander(redirect_limit=self.limits.short_url_redirect_limit)

    def new_candidate_map(self) -> CandidateMap:
        return CandidateMap(cap=self.limits.max_urls_per_type)

    async def append(
        self,
        candidates: CandidateMap,
        raw_url: str | None,
        *,
        lead: Lead,
        source: CandidateSource,
        run: RunContext,
        type_hint: ProfileType | None = None,
        base_url: str | None = None,
        context_text: str | None = None,
    ) -> bool:
        """Validate one raw URL and insert it; True only when the map changed."""
        normalized = normalize_url(raw_url)
        if not normalized:
            return False
        normalized = await self.expander.expand(normalized)

        profile_type = type_hint or classify(normalized)
        if profile_type is None or profile_type == ProfileType.OTHER:
            return False
        canonical = canonicalize(normalized, profile_type)
        if not canonical or candidates.contains(profile_type, canonical):
            return False

        if source == CandidateSource.LEAD_WEBSITE_SEED and profile_type == ProfileType.WEBSITE:
            decision = user_seed_decision()
        else:
            decision = await self.validator.decide(
                lead,
                canonical,
                profile_type,
                source=source,
                base_url=base_url,
                context_text=context_text,
                run=run,
            )
            if not decision.accepted:
                return False

        if not candidates.try_insert(profile_type, canonical, source):
            logger.debug("candidate_slot_full", profile_type=profile_type.value, url=canonical)
            return False

        run.remember_identity(profile_type, canonical, decision)
        logger.info(
            "candidate_accepted",
            profile_type=profile_type.value,
            url=canonical,
            source=source.value,
            strategy=decision.strategy.value,
        )
        return True

    async def seed(
        self,
        lead: Lead,
        search_results: list[SearchResult],
        run: RunContext,
    ) -> CandidateMap:
        candidates = self.new_candidate_map()

        await self.append(
            candidates,
            handle_url(lead.handle, lead.platform),
            lead=lead,
            source=CandidateSource.LEAD_HANDLE_SEED,
            run=run,
        )
        await self.append(
            candidates,
            seed_website(lead.website),
            lead=lead,
            source=self.website_seed_source(lead),
            run=run,
            type_hint=ProfileType.WEBSITE,
        )

        if self.store is not None and lead.id is not None:
            profiles = await self.store.list_social_profiles(lead.id)
            existing = [p for p in profiles if p.source != DEEP_DIVE_SOURCE][:EXISTING_PROFILE_LIMIT]
            for profile in existing:
                await self.append(
                    candidates,
                    profile.url,
                    lead=lead,
                    source=CandidateSource.EXISTING_PROFILE_SEED,
                    run=run,
                )

            for signal in await self.store.list_signals(lead.id, SIGNAL_SEED_LIMIT):
                await self.append(
                    candidates,
                    signal.url,
                    lead=lead,
                    source=CandidateSource.SIGNAL_SEED,
                    run=run,
                    context_text=f"{signal.author_name or ''} {signal.author_handle or ''}",
                )

            for communication in await self.store.list_communications(
                lead.id, COMMUNICATION_SEED_LIMIT
            ):
                await self.append(
                    candidates,
                    communication.link,
                    lead=lead,
                    source=CandidateSource.COMMUNICATION_SEED,
                    run=run,
                    context_text=f"{communication.summary or ''} {communication.notes or ''}",
                )

        for result in search_results:
            await self.append(
                candidates,
                result.url,
                lead=lead,
                source=CandidateSource.SEARCH_RESULT,
                run=run,
                context_text=f"{result.title} {result.snippet}",
            )

        logger.info("candidates_seeded", lead_id=lead.id, count=len(candidates))
        return candidates

    @staticmethod
    def website_seed_source(lead: Lead) -> CandidateSource:
        if (lead.website or "").strip():
            return CandidateSource.LEAD_WEBSITE_SEED
        return CandidateSource.EXISTING_PROFILE_SEED

    async def expand(
        self,
        lead: Lead,
        candidates: CandidateMap,
        dossiers: list[Dossier],
        run: RunContext,
    ) -> bool:
        """Validate links found on freshly scraped pages; True if any was added."""
        added_any = False
        for dossier in dossiers:
            source = (
                CandidateSource.LINK_HUB_DISCOVERY
                if is_link_aggregator(dossier.url)
                else CandidateSource.PROFILE_DISCOVERY
            )
            context = dossier.context_text
            for url in dossier.links:
                if not relevant_discovered_link(dossier.url, url):
                    continue
                added = await self.append(
                    candidates,
                    url,
                    lead=lead,
                    source=source,
                    run=run,
                    base_url=dossier.url,
                    context_text=context,
                )
                added_any = added_any or added
        return added_any
