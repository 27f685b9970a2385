"""
Reconciles a lead's engine-owned social profile rows with the candidate map.

Full re-sync: engine rows whose (profile_type, url) pair is no longer in the
map are deleted, every pair in the map is upserted. Rows entered by users
(source != "deep_dive") are never modified or deleted. A row whose desired
state already matches what is stored is not written, so syncing the same
map twice within a run converges to zero writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from deep_dive.core.constants import DEEP_DIVE_SOURCE
from deep_dive.core.logging import get_logger
from deep_dive.database.models import Lead, SocialProfile
from deep_dive.database.store import LeadStore
from deep_dive.engine.candidates import CandidateMap
from deep_dive.engine.context import RunContext
from deep_dive.utils.urls import extract_handle, normalize_url

logger = get_logger(__name__)


@dataclass
class SyncReport:
    created: list[tuple[str, str]] = field(default_factory=list)
    updated: list[tuple[str, str]] = field(default_factory=list)
    deleted: list[tuple[str, str]] = field(default_factory=list)
    unchanged: int = 0

    @property
    def writes(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)


class SocialProfileSync:
    def __init__(self, store: LeadStore) -> None:
        self.store = store

    async def sync(self, lead: Lead, candidates: CandidateMap, run: RunContext) -> SyncReport:
        report = SyncReport()
        if lead.id is None:
            logger.warning("profile_sync_skipped", reason="lead has no id")
            return report

        desired = {(t.value, url) for t, url in candidates.pairs()}
        existing: dict[tuple[str, str], SocialProfile] = {}

        for profile in await self.store.list_social_profiles(lead.id):
            pair = (profile.profile_type, profile.url)
            if profile.is_engine_owned and pair not in desired:
                await self.store.delete_social_profile(profile.id)
                report.deleted.append(pair)
                continue
            existing[pair] = profile

        for profile_type, url in candidates.pairs():
            normalized = normalize_url(url)
            if not normalized:
                continue
            pair = (profile_type.value, normalized)
            current = existing.get(pair)
            if current is not None and not current.is_engine_owned:
                # user-entered row for the same pair wins
                report.unchanged += 1
                continue

            profile = (
                current.model_copy(deep=True)
                if current is not None
                else SocialProfile(lead_id=lead.id, profile_type=profile_type.value, url=normalized)
            )
            if not profile.handle:
                profile.handle = extract_handle(normalized, profile_type)
            profile.source = DEEP_DIVE_SOURCE
            metadata = {**profile.metadata, "last_seen_at": run.last_seen_at}
            decision = run.identity_for(profile_type.value, normalized)
            if decision:
                metadata["identity_validation"] = decision
            profile.metadata = metadata

            if current is not None and _same_state(current, profile):
                report.unchanged += 1
                continue

            await self.store.save_social_profile(profile)
            (report.updated if current is not None else report.created).append(pair)

        logger.info(
            "profiles_synced",
            lead_id=lead.id,
            created=len(report.created),
            updated=len(report.updated),
            deleted=len(report.deleted),
            unchanged=report.unchanged,
        )
        return report


def _same_state(stored: SocialProfile, desired: SocialProfile) -> bool:
    return (
        stored.handle == desired.handle
        and stored.source == desired.source
        and stored.metadata == desired.metadata
    )
