"""
Pydantic v2 data models for all Deep Dive entities.

These models are used for:
- Lead store serialization (memory and SQLite)
- Provider output structure (search results, profile snapshots)
- Identity decisions and the persisted deep dive result
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from deep_dive.core.constants import DEEP_DIVE_SOURCE, DeepDiveStatus, IdentityStrategy


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def truncate(value: str | None, limit: int) -> str:
    """Truncate text to at most ``limit`` characters, marking the cut with '...'."""
    text = value or ""
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)] + "..."


# ── Base ──────────────────────────────────────────────────────────

class BaseEntity(BaseModel):
    """Base class for persisted Deep Dive entities."""

    id: int | None = None
    created_at: datetime = Field(default_factory=utc_now)


# ── Lead and its history ──────────────────────────────────────────

class Lead(BaseEntity):
    """The person or organization being researched."""

    organization_id: int | None = None
    name: str
    platform: str | None = None
    handle: str | None = None
    role: str | None = None
    country: str | None = None
    notes: str | None = None
    category: str | None = None
    website: str | None = None
    email: str | None = None
    deep_dive_status: DeepDiveStatus = DeepDiveStatus.IDLE
    deep_dive_error: str | None = None
    deep_dive_last_run_at: datetime | None = None
    deep_dive_data: dict[str, Any] = {}


class Signal(BaseEntity):
    """A captured public post or mention attributed to a lead."""

    lead_id: int | None = None
    source: str | None = None
    author_name: str | None = None
    author_handle: str | None = None
    title: str | None = None
    content: str | None = None
    url: str | None = None
    captured_at: datetime = Field(default_factory=utc_now)


class Communication(BaseEntity):
    """An outreach touchpoint with a lead."""

    lead_id: int | None = None
    channel: str | None = None
    summary: str | None = None
    notes: str | None = None
    link: str | None = None
    occurred_at: datetime = Field(default_factory=utc_now)


class SocialProfile(BaseEntity):
    """
    A (profile_type, canonical url) pair attached to a lead.

    Rows whose source is "deep_dive" are owned by the engine; everything else
    was entered by a user and is never modified by a run.
    """

    lead_id: int
    profile_type: str
    url: str
    handle: str | None = None
    source: str = DEEP_DIVE_SOURCE
    notes: str | None = None
    metadata: dict[str, Any] = {}
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_engine_owned(self) -> bool:
        return self.source == DEEP_DIVE_SOURCE


# ── Provider payloads ─────────────────────────────────────────────

class SearchResult(BaseModel):
    """One organic hit returned by a search provider."""

    title: str = ""
    url: str
    snippet: str = ""
    query: str = ""


class ProfileSnapshot(BaseModel):
    """Raw page snapshot returned by a profile fetcher."""

    url: str
    final_url: str | None = None
    channel_type: str = ""
    title: str = ""
    description: str = ""
    profile_text: str = ""
    about_url: str = ""
    about_text: str = ""
    recent_posts: list[str] = []
    emails: list[str] = []
    links: list[str] = []


class Dossier(BaseModel):
    """Bounded summary of one scraped profile or website."""

    profile_type: str
    url: str
    title: str = ""
    description: str = ""
    profile_text: str = ""
    about_url: str = ""
    about_text: str = ""
    recent_posts: list[str] = []
    emails: list[str] = []
    links: list[str] = []

    @classmethod
    def from_snapshot(cls, snapshot: ProfileSnapshot, profile_type: str | None = None) -> "Dossier":
        return cls(
            profile_type=snapshot.channel_type or profile_type or "",
            url=snapshot.final_url or snapshot.url,
            title=snapshot.title or "",
            description=snapshot.description or "",
            profile_text=truncate(snapshot.profile_text, 1200),
            about_url=snapshot.about_url or "",
            about_text=truncate(snapshot.about_text, 1200),
            recent_posts=list(snapshot.recent_posts)[:20],
            emails=list(snapshot.emails)[:20],
            links=list(snapshot.links)[:30],
        )

    @property
    def context_text(self) -> str:
        """Text surrounding links found on this page, used as identity context."""
        return " ".join([self.title, self.description, self.profile_text])


# ── Engine outputs ────────────────────────────────────────────────

class IdentityDecision(BaseModel):
    """Verdict on whether a candidate URL belongs to the lead."""

    accepted: bool
    decision: str
    confidence: float = 0.0
    reason: str = ""
    strategy: IdentityStrategy

    def as_metadata(self) -> dict[str, Any]:
        """Audit form stored on the social profile row."""
        return {
            "decision": self.decision,
            "confidence": self.confidence,
            "reason": self.reason,
            "strategy": self.strategy.value,
        }


class DeepDiveSummary(BaseModel):
    summary: str
    outreach_angle: str
    next_step: str
    confidence: float = 0.0
    highlights: list[str] = []


class DiscoveredEmail(BaseModel):
    email: str
    source: str | None = None


class DeepDiveResult(BaseModel):
    """Everything a run writes into ``Lead.deep_dive_data``."""

    provider: str | None = None
    model: str | None = None
    queries: list[str] = []
    profiles: dict[str, list[str]] = {}
    profile_dossiers: list[Dossier] = []
    summary: str = ""
    outreach_angle: str = ""
    next_step: str = ""
    confidence: float = 0.0
    highlights: list[str] = []
    emails_found: list[DiscoveredEmail] = []
    search_warnings: list[str] = []
    search_sources: list[str] = []
    search_results: list[SearchResult] = []

    def to_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
