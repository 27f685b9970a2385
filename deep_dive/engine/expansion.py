"""
Bounded multi-wave profile graph expansion.

Each wave scrapes every not-yet-visited URL in the candidate map, then
validates the links found on those pages. Termination is guaranteed by
three caps: the wave count, the run-wide dossier count, and the per-type
slot cap of the candidate map (a wave that adds no links ends the loop).
"""

from __future__ import annotations

from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.constants import ProfileType
from deep_dive.core.logging import get_logger
from deep_dive.database.models import Dossier, Lead
from deep_dive.engine.candidates import CandidateMap
from deep_dive.engine.context import RunContext
from deep_dive.engine.discovery import ProfileDiscovery
from deep_dive.engine.sync import SocialProfileSync
from deep_dive.providers.base import ProfileFetcher
from deep_dive.utils.urls import normalize_url

logger = get_logger(__name__)


class GraphExpander:
    """
    Usage:
        expander = GraphExpander(fetcher, discovery, sync, limits)
        dossiers = await expander.expand(lead, candidates, run)
    """

    def __init__(
        self,
        fetcher: ProfileFetcher,
        discovery: ProfileDiscovery,
        sync: SocialProfileSync | None = None,
        limits: DeepDiveLimits | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.discovery = discovery
        self.sync = sync
        self.limits = limits or DeepDiveLimits()

    async def expand(self, lead: Lead, candidates: CandidateMap, run: RunContext) -> list[Dossier]:
        dossiers: list[Dossier] = []
        seen: set[str] = set()

        for wave_number in range(1, self.limits.profile_expansion_waves + 1):
            remaining = self.limits.max_dossiers - len(dossiers)
            wave = await self._scrape(candidates, seen, remaining)
            logger.info("expansion_wave_scraped", wave=wave_number, dossiers=len(wave))
            if not wave:
                break
            dossiers.extend(wave)

            added = await self.discovery.expand(lead, candidates, wave, run)
            if added and self.sync is not None:
                await self.sync.sync(lead, candidates, run)

            if len(dossiers) >= self.limits.max_dossiers:
                logger.info("expansion_dossier_cap_reached", wave=wave_number)
                break
            if not added:
                break

        return dossiers[: self.limits.max_dossiers]

    async def _scrape(self, candidates: CandidateMap, seen: set[str], remaining: int) -> list[Dossier]:
        """Fetch unvisited candidate URLs sequentially, up to ``remaining`` dossiers."""
        wave: list[Dossier] = []
        if remaining <= 0:
            return wave

        for profile_type, url in list(candidates.pairs()):
            normalized = normalize_url(url)
            if not normalized or normalized in seen:
                continue
            seen.add(normalized)

            result = await self.fetcher.fetch(
                normalized,
                profile_type.value,
                include_about=profile_type == ProfileType.WEBSITE,
            )
            if not result.success or result.value is None:
                logger.debug("profile_fetch_skipped", url=normalized, error=result.error)
                continue

            wave.append(Dossier.from_snapshot(result.value, profile_type.value))
            if len(wave) >= remaining:
                break
        return wave
