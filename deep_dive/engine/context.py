"""
Per-run state for a single deep dive.

A RunContext is created at the start of DeepDiveService.run() and dropped
when the run ends. It owns every cache and accumulator the components
share, so nothing leaks between runs or between leads:

- identity decision cache (memoized validator verdicts)
- identity clue-token cache
- identity metadata per accepted (profile_type, url) pair, for sync
- search warnings and sources surfaced to users
"""

import hashlib
from datetime import datetime, timezone
from typing import Any

from deep_dive.core.config import DeepDiveLimits
from deep_dive.core.logging import get_logger
from deep_dive.database.models import IdentityDecision, Lead

logger = get_logger(__name__)


def generate_run_id(lead: Lead, started_at: datetime) -> str:
    """
    Format: dd_{YYYYMMDD}_{HHMMSS}_{lead_hash}

    Example: dd_20260120_143052_a1b2c3d4
    """
    seed = f"{lead.id}:{lead.name}".encode()
    return f"dd_{started_at.strftime('%Y%m%d_%H%M%S')}_{hashlib.md5(seed).hexdigest()[:8]}"


class RunContext:
    """Caches and diagnostics owned by one run."""

    def __init__(
        self,
        lead: Lead,
        limits: DeepDiveLimits | None = None,
        started_at: datetime | None = None,
    ) -> None:
        self.limits = limits or DeepDiveLimits()
        self.started_at = started_at or datetime.now(timezone.utc)
        self.run_id = generate_run_id(lead, self.started_at)
        self.lead_id = lead.id

        self.decisions: dict[tuple[Any, ...], IdentityDecision] = {}
        self.clue_tokens: dict[Any, list[str]] = {}
        self.identity_metadata: dict[tuple[str, str], dict[str, Any]] = {}
        self.search_warnings: list[str] = []
        self.search_sources: list[str] = []

    @property
    def last_seen_at(self) -> str:
        """Timestamp stamped on synced profiles; constant for the whole run."""
        return self.started_at.isoformat()

    def record_search_diagnostics(
        self,
        query: str,
        warnings: list[str],
        source: str | None,
    ) -> None:
        for warning in warnings:
            text = " ".join(str(warning).split())
            if not text:
                continue
            message = f"{text} (query: {query})"
            if message not in self.search_warnings:
                self.search_warnings.append(message)
        if source and source.strip():
            self.search_sources.append(" ".join(source.split()))

    def remember_identity(
        self,
        profile_type: str,
        url: str,
        decision: IdentityDecision,
    ) -> None:
        self.identity_metadata[(str(profile_type), url)] = decision.as_metadata()

    def identity_for(self, profile_type: str, url: str) -> dict[str, Any] | None:
        return self.identity_metadata.get((str(profile_type), url))

    def surfaced_warnings(self) -> list[str]:
        return self.search_warnings[: self.limits.max_search_warnings]

    def unique_sources(self) -> list[str]:
        return list(dict.fromkeys(self.search_sources))
