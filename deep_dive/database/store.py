"""
Lead store interface and the in-memory implementation.

The engine only talks to a LeadStore. Two implementations ship:
- MemoryLeadStore: process-local dicts, used by tests and CLI dry runs
- SQLiteLeadStore (sqlite_store.py): aiosqlite-backed persistence
"""

import abc
from itertools import count

from deep_dive.core.exceptions import DatabaseError
from deep_dive.database.models import Communication, Lead, Signal, SocialProfile, utc_now


class LeadStore(abc.ABC):
    """Async persistence boundary for leads and their social profiles."""

    async def connect(self) -> None:
        """Open underlying resources. No-op by default."""

    async def disconnect(self) -> None:
        """Release underlying resources. No-op by default."""

    # ── Leads ────────────────────────────────────────────────────

    @abc.abstractmethod
    async def get_lead(self, lead_id: int) -> Lead | None: ...

    @abc.abstractmethod
    async def save_lead(self, lead: Lead) -> Lead:
        """Insert or update a lead; assigns an id on first save."""

    # ── History ──────────────────────────────────────────────────

    @abc.abstractmethod
    async def add_signal(self, signal: Signal) -> Signal: ...

    @abc.abstractmethod
    async def add_communication(self, communication: Communication) -> Communication: ...

    @abc.abstractmethod
    async def list_signals(self, lead_id: int, limit: int) -> list[Signal]:
        """Most recently captured signals first."""

    @abc.abstractmethod
    async def list_communications(self, lead_id: int, limit: int) -> list[Communication]:
        """Most recent communications first."""

    # ── Social profiles ──────────────────────────────────────────

    @abc.abstractmethod
    async def list_social_profiles(self, lead_id: int) -> list[SocialProfile]:
        """All profile rows for a lead, in insertion order."""

    @abc.abstractmethod
    async def save_social_profile(self, profile: SocialProfile) -> SocialProfile:
        """Insert or update a profile row, unique per (lead_id, profile_type, url)."""

    @abc.abstractmethod
    async def delete_social_profile(self, profile_id: int) -> None: ...


class MemoryLeadStore(LeadStore):
    """Dictionary-backed store. Returns copies so callers never alias stored state."""

    def __init__(self) -> None:
        self._leads: dict[int, Lead] = {}
        self._signals: dict[int, Signal] = {}
        self._communications: dict[int, Communication] = {}
        self._profiles: dict[int, SocialProfile] = {}
        self._ids = count(1)

    async def get_lead(self, lead_id: int) -> Lead | None:
        lead = self._leads.get(lead_id)
        return lead.model_copy(deep=True) if lead else None

    async def save_lead(self, lead: Lead) -> Lead:
        if lead.id is None:
            lead.id = next(self._ids)
        self._leads[lead.id] = lead.model_copy(deep=True)
        return lead

    async def add_signal(self, signal: Signal) -> Signal:
        signal.id = next(self._ids)
        self._signals[signal.id] = signal.model_copy(deep=True)
        return signal

    async def add_communication(self, communication: Communication) -> Communication:
        communication.id = next(self._ids)
        self._communications[communication.id] = communication.model_copy(deep=True)
        return communication

    async def list_signals(self, lead_id: int, limit: int) -> list[Signal]:
        rows = [s for s in self._signals.values() if s.lead_id == lead_id]
        rows.sort(key=lambda s: s.captured_at, reverse=True)
        return [s.model_copy(deep=True) for s in rows[:limit]]

    async def list_communications(self, lead_id: int, limit: int) -> list[Communication]:
        rows = [c for c in self._communications.values() if c.lead_id == lead_id]
        rows.sort(key=lambda c: c.occurred_at, reverse=True)
        return [c.model_copy(deep=True) for c in rows[:limit]]

    async def list_social_profiles(self, lead_id: int) -> list[SocialProfile]:
        return [
            p.model_copy(deep=True)
            for p in self._profiles.values()
            if p.lead_id == lead_id
        ]

    async def save_social_profile(self, profile: SocialProfile) -> SocialProfile:
        for existing in self._profiles.values():
            if (
                existing.id != profile.id
                and existing.lead_id == profile.lead_id
                and existing.profile_type == profile.profile_type
                and existing.url == profile.url
            ):
                raise DatabaseError(
                    "memory",
                    "save_social_profile",
                    f"duplicate profile {profile.profile_type} {profile.url}",
                )
        if profile.id is None:
            profile.id = next(self._ids)
        profile.updated_at = utc_now()
        self._profiles[profile.id] = profile.model_copy(deep=True)
        return profile

    async def delete_social_profile(self, profile_id: int) -> None:
        self._profiles.pop(profile_id, None)
