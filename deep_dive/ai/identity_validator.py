"""
Identity validator: is this candidate URL the same person as the lead?

Decision procedure, in order:
  1. Hard rule: a generic handle/path (watch, feed, about, ...) on a social
     platform is rejected outright.
  2. LLM judgement: accepted when the verdict is "accept" with confidence
     at or above ``identity_min_confidence``.
     Websites additionally need an identity anchor. A rejecting LLM is
     overridden (strategy hybrid_rule) when an anchored website has the
     lead's full name in its host or the lead's identity in its path.
  3. Deterministic fallback when the LLM is unavailable or returns
     garbage: exact handle / full-name matching, and acceptance only for
     trusted seeds or exact-handle search hits.

Verdicts are memoized on the RunContext. Name lookalikes must not pass:
false negatives are preferred over false positives everywhere except the
website host/path carve-out.
"""

import math
from typing import Any

from deep_dive.ai.prompts import IDENTITY_SCHEMA, IDENTITY_SYSTEM_PROMPT, IDENTITY_USER_PROMPT
from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.constants import (
    TRUSTED_SEED_SOURCES,
    CandidateSource,
    IdentityStrategy,
    IdentityVerdict,
    ProfileType,
)
from deep_dive.core.logging import get_logger
from deep_dive.database.models import IdentityDecision, Lead, truncate
from deep_dive.engine.context import RunContext
from deep_dive.providers.base import CompletionProvider
from deep_dive.utils.identity_tokens import (
    IdentityClueExtractor,
    extract_identity_tokens,
    known_handle,
    name_identity,
    normalize_token,
    platform_profile_type,
)
from deep_dive.utils.urls import extract_handle, host_of, is_generic_handle, path_segments, same_host

logger = get_logger(__name__)

CONTEXT_KEY_LENGTH = 220
PROMPT_CONTEXT_LENGTH = 500
HOST_MATCH_CONFIDENCE = 0.92
PATH_MATCH_CONFIDENCE = 0.87


def normalize_confidence(value: Any) -> float:
    """Coerce a model-reported confidence into [0, 1]; values above 1 are percentages."""
    if isinstance(value, bool):
        return 0.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(confidence):
        return 0.0
    if confidence > 1.0:
        confidence /= 100.0
    return min(max(confidence, 0.0), 1.0)


# ── Deterministic identity checks ────────────────────────────────

def host_matches_full_name(lead: Lead, url: str) -> bool:
    host = host_of(url).removeprefix("www.")
    first, last = name_identity(lead.name)
    return bool(host and first and last and first in host and last in host)


def path_matches_identity(lead: Lead, url: str) -> bool:
    """URL path (segments joined and normalized) contains the known handle or both names."""
    combined = "".join(normalize_token(segment) for segment in path_segments(url))
    if not combined:
        return False
    handle = known_handle(lead)
    if handle and handle in combined:
        return True
    first, last = name_identity(lead.name)
    return bool(first and last and first in combined and last in combined)


class ContextIdentity:
    """How strongly a piece of surrounding text points at the lead."""

    def __init__(self, lead: Lead, text: str | None, clue_tokens: list[str]) -> None:
        normalized = normalize_token(text)
        tokens = set(extract_identity_tokens(text))
        first, last = name_identity(lead.name)
        handle = known_handle(lead)

        self.name_match = bool(first and last and first in tokens and last in tokens)
        self.handle_match = bool(handle and handle in normalized)
        self.clue_match_count = sum(1 for token in clue_tokens if token in tokens)
        self.clues_present = bool(clue_tokens)


def is_website_anchored(
    lead: Lead,
    url: str,
    *,
    source: str,
    base_url: str | None,
    context_text: str | None,
    clue_tokens: list[str],
    clue_matches_required: int = 2,
) -> bool:
    """
    Whether a website candidate is tied to the lead by something beyond its text.

    A host carrying the full name is anchored unless the lead has known clue
    tokens and the context matches neither them nor the handle.
    """
    if source == CandidateSource.LEAD_WEBSITE_SEED:
        return True
    if source == CandidateSource.PROFILE_DISCOVERY and base_url and same_host(base_url, url):
        return True

    context = ContextIdentity(lead, context_text, clue_tokens)
    if source == CandidateSource.LINK_HUB_DISCOVERY:
        if context.handle_match:
            return True
        if context.name_match and context.clue_match_count >= 1:
            return True

    if host_matches_full_name(lead, url):
        if not context.clues_present:
            return True
        return context.handle_match or context.clue_match_count >= 1

    if not path_matches_identity(lead, url):
        return False
    if context.handle_match:
        return True
    return context.name_match and context.clue_match_count >= clue_matches_required


def platform_handle_exact_match(lead: Lead, profile_type: str, handle: str | None) -> bool:
    """Candidate handle equals the lead's stated handle on the lead's own platform."""
    if platform_profile_type(lead.platform) != profile_type:
        return False
    expected = known_handle(lead)
    return bool(expected) and normalize_token(handle) == expected


def strict_platform_handle_required(lead: Lead, profile_type: str) -> bool:
    return platform_profile_type(lead.platform) == profile_type and bool(known_handle(lead))


def social_name_match(
    lead: Lead,
    handle: str | None,
    *,
    context_text: str | None,
    strict_context: bool,
) -> bool:
    """Both name tokens embedded in the handle, and in the context when strict."""
    first, last = name_identity(lead.name)
    if not first or not last:
        return False
    normalized = normalize_token(handle)
    if not normalized or first not in normalized or last not in normalized:
        return False
    if not strict_context:
        return True
    context = normalize_token(context_text)
    return bool(context) and first in context and last in context


# ── Validator ────────────────────────────────────────────────────

class IdentityValidator:
    """
    Hybrid deterministic / LLM identity verification with per-run memoization.

    Usage:
        validator = IdentityValidator(completion, IdentityClueExtractor(store), limits)
        decision = await validator.decide(
            lead, "https://x.com/avlinfilms", ProfileType.X,
            source=CandidateSource.SEARCH_RESULT, base_url=None,
            context_text="Avery Lin AI short film", run=run,
        )
    """

    def __init__(
        self,
        completion: CompletionProvider,
        clue_extractor: IdentityClueExtractor | None = None,
        limits: DeepDiveLimits | None = None,
    ) -> None:
        self.completion = completion
        self.limits = limits or DeepDiveLimits()
        self.clue_extractor = clue_extractor or IdentityClueExtractor(
            limit=self.limits.max_identity_clue_tokens
        )

    @staticmethod
    def cache_key(
        lead: Lead,
        canonical_url: str,
        profile_type: str,
        source: str,
        context_text: str | None,
    ) -> tuple[Any, ...]:
        lead_key = lead.id if lead.id is not None else f"new-{id(lead)}"
        return (
            lead_key,
            canonical_url,
            str(profile_type),
            str(source),
            normalize_token(context_text)[:CONTEXT_KEY_LENGTH],
        )

    async def decide(
        self,
        lead: Lead,
        canonical_url: str,
        profile_type: ProfileType | str,
        *,
        source: CandidateSource | str,
        base_url: str | None = None,
        context_text: str | None = None,
        run: RunContext,
    ) -> IdentityDecision:
        key = self.cache_key(lead, canonical_url, profile_type, source, context_text)
        cached = run.decisions.get(key)
        if cached is not None:
            return cached

        try:
            decision = await self._evaluate(
                lead,
                canonical_url,
                ProfileType(profile_type),
                source=CandidateSource(source),
                base_url=base_url,
                context_text=context_text,
                run=run,
            )
        except Exception as e:
            logger.warning(
                "identity_decision_failed",
                url=canonical_url,
                profile_type=str(profile_type),
                error=f"{type(e).__name__}: {e}",
            )
            decision = IdentityDecision(
                accepted=False,
                decision=IdentityVerdict.REJECT,
                confidence=0.0,
                reason=truncate(
                    f"Validation error: {type(e).__name__}", self.limits.identity_reason_max_len
                ),
                strategy=IdentityStrategy.ERROR,
            )

        run.decisions[key] = decision
        logger.debug(
            "identity_decided",
            url=canonical_url,
            source=str(source),
            accepted=decision.accepted,
            strategy=decision.strategy.value,
        )
        return decision

    async def _evaluate(
        self,
        lead: Lead,
        canonical_url: str,
        profile_type: ProfileType,
        *,
        source: CandidateSource,
        base_url: str | None,
        context_text: str | None,
        run: RunContext,
    ) -> IdentityDecision:
        handle = extract_handle(canonical_url, profile_type)
        if profile_type != ProfileType.WEBSITE and is_generic_handle(handle):
            return IdentityDecision(
                accepted=False,
                decision=IdentityVerdict.REJECT,
                confidence=1.0,
                reason="Generic non-person handle/path.",
                strategy=IdentityStrategy.HARD_RULE,
            )

        llm = await self._llm_decision(
            lead,
            canonical_url,
            profile_type,
            source=source,
            base_url=base_url,
            context_text=context_text,
            handle=handle,
        )
        if llm is not None:
            return await self._apply_llm_decision(
                llm,
                lead,
                canonical_url,
                profile_type,
                source=source,
                base_url=base_url,
                context_text=context_text,
                run=run,
            )

        matched = await self._deterministic_match(
            lead,
            canonical_url,
            profile_type,
            source=source,
            base_url=base_url,
            context_text=context_text,
            handle=handle,
            run=run,
        )
        exact_handle_seed = source == CandidateSource.SEARCH_RESULT and platform_handle_exact_match(
            lead, profile_type, handle
        )
        accepted = matched and (source in TRUSTED_SEED_SOURCES or exact_handle_seed)
        return IdentityDecision(
            accepted=accepted,
            decision=IdentityVerdict.ACCEPT if accepted else IdentityVerdict.REJECT,
            confidence=0.5 if accepted else 0.0,
            reason=(
                "LLM unavailable; strict fallback "
                f"{'accepted trusted seed' if accepted else 'rejected candidate'}."
            ),
            strategy=IdentityStrategy.FALLBACK,
        )

    async def _apply_llm_decision(
        self,
        llm: dict[str, Any],
        lead: Lead,
        canonical_url: str,
        profile_type: ProfileType,
        *,
        source: CandidateSource,
        base_url: str | None,
        context_text: str | None,
        run: RunContext,
    ) -> IdentityDecision:
        llm_accepted = (
            llm["decision"] == IdentityVerdict.ACCEPT
            and llm["confidence"] >= self.limits.identity_min_confidence
        )
        decision = IdentityDecision(
            accepted=llm_accepted,
            decision=llm["decision"],
            confidence=llm["confidence"],
            reason=llm["reason"],
            strategy=IdentityStrategy.LLM,
        )
        if profile_type != ProfileType.WEBSITE:
            return decision

        clue_tokens = await self.clue_extractor.clue_tokens(lead, run.clue_tokens)
        anchored = is_website_anchored(
            lead,
            canonical_url,
            source=source,
            base_url=base_url,
            context_text=context_text,
            clue_tokens=clue_tokens,
            clue_matches_required=self.limits.website_clue_matches_required,
        )
        host_match = host_matches_full_name(lead, canonical_url)
        path_match = path_matches_identity(lead, canonical_url)
        decision.accepted = anchored and (llm_accepted or host_match or path_match)

        if decision.accepted and not llm_accepted:
            decision.decision = IdentityVerdict.ACCEPT
            decision.confidence = max(
                llm["confidence"],
                HOST_MATCH_CONFIDENCE if host_match else PATH_MATCH_CONFIDENCE,
            )
            decision.reason = (
                "Accepted by exact full-name host match despite conservative LLM rejection."
                if host_match
                else "Accepted by exact identity path match despite conservative LLM rejection."
            )
            decision.strategy = IdentityStrategy.HYBRID_RULE
        return decision

    async def _deterministic_match(
        self,
        lead: Lead,
        canonical_url: str,
        profile_type: ProfileType,
        *,
        source: CandidateSource,
        base_url: str | None,
        context_text: str | None,
        handle: str | None,
        run: RunContext,
    ) -> bool:
        if profile_type == ProfileType.WEBSITE:
            clue_tokens = await self.clue_extractor.clue_tokens(lead, run.clue_tokens)
            return is_website_anchored(
                lead,
                canonical_url,
                source=source,
                base_url=base_url,
                context_text=context_text,
                clue_tokens=clue_tokens,
                clue_matches_required=self.limits.website_clue_matches_required,
            )
        if strict_platform_handle_required(lead, profile_type):
            return platform_handle_exact_match(lead, profile_type, handle)
        if platform_handle_exact_match(lead, profile_type, handle):
            return True
        return social_name_match(
            lead,
            handle,
            context_text=context_text,
            strict_context=source == CandidateSource.SEARCH_RESULT,
        )

    async def _llm_decision(
        self,
        lead: Lead,
        canonical_url: str,
        profile_type: ProfileType,
        *,
        source: CandidateSource,
        base_url: str | None,
        context_text: str | None,
        handle: str | None,
    ) -> dict[str, Any] | None:
        """Ask the completion provider; None means take the deterministic fallback."""
        first, last = name_identity(lead.name)
        prompt = IDENTITY_USER_PROMPT.format(
            name=lead.name,
            first_name=first or "",
            last_name=last or "",
            platform=lead.platform or "",
            known_handle=lead.handle or "",
            known_handle_normalized=known_handle(lead),
            role=lead.role or "",
            country=lead.country or "",
            url=canonical_url,
            profile_type=profile_type.value,
            handle=handle or "",
            handle_normalized=normalize_token(handle),
            source=source.value,
            base_url=base_url or "",
            context_text=truncate(context_text, PROMPT_CONTEXT_LENGTH),
        )
        result = await self.completion.complete(IDENTITY_SYSTEM_PROMPT, prompt, IDENTITY_SCHEMA)
        if not result.success or not result.value:
            logger.debug("identity_llm_fallback", url=canonical_url, error=result.error)
            return None

        verdict = str(result.value.get("decision") or "").strip().lower()
        if verdict not in {v.value for v in IdentityVerdict}:
            logger.debug("identity_llm_unusable", url=canonical_url, decision=verdict)
            return None

        reason = " ".join(str(result.value.get("reason") or "").split())
        return {
            "decision": IdentityVerdict(verdict),
            "confidence": normalize_confidence(result.value.get("confidence")),
            "reason": truncate(reason, self.limits.identity_reason_max_len),
        }
