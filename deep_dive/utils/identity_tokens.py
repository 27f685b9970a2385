"""
Identity token helpers.

Everything the identity validator compares goes through normalize_token():
names, handles, URL path segments and free text all collapse to lowercase
ascii alphanumerics so "Shána-Nielsen" and "shananielsen" line up.
"""

import re
import unicodedata
from collections.abc import Iterable
from typing import Any

from deep_dive.core.constants import IDENTITY_TOKEN_STOPWORDS, ProfileType
from deep_dive.database.models import Communication, Lead, Signal

_ALPHA_RUN = re.compile(r"[^\W\d_]+")
_WORD = re.compile(r"[^\W\d_][^\W_]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_X_TOKEN = re.compile(r"(?<![a-z0-9])x(?![a-z0-9])")


def normalize_token(value: Any) -> str:
    """Transliterate to ascii, lowercase, keep only [a-z0-9]."""
    if value is None:
        return ""
    text = unicodedata.normalize("NFKD", str(value))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    return _NON_ALNUM.sub("", text)


def name_identity(name: str | None) -> tuple[str | None, str | None]:
    """First and last normalized alphabetic tokens of a name."""
    tokens = [normalize_token(t) for t in _ALPHA_RUN.findall(name or "")]
    tokens = [t for t in tokens if t]
    if not tokens:
        return None, None
    return tokens[0], tokens[-1]


def extract_identity_tokens(text: str | None) -> list[str]:
    """Distinct content tokens (length >= 3, or "ai") in order of appearance."""
    tokens: list[str] = []
    seen: set[str] = set()
    for raw in _WORD.findall(text or ""):
        token = normalize_token(raw)
        if len(token) < 3 and token != "ai":
            continue
        if token in IDENTITY_TOKEN_STOPWORDS or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def role_tokens(role: str | None) -> list[str]:
    tokens: list[str] = []
    for raw in _ALPHA_RUN.findall(role or ""):
        token = normalize_token(raw)
        if len(token) >= 4 and token not in tokens:
            tokens.append(token)
    return tokens


def known_handle(lead: Lead) -> str:
    """The lead's stated handle, normalized."""
    return normalize_token((lead.handle or "").strip().removeprefix("@"))


def platform_profile_type(platform: str | None) -> ProfileType | None:
    """Map a free-text platform label ("X (Twitter)", "LinkedIn") to a profile type."""
    value = (platform or "").lower()
    if "twitter" in value or _X_TOKEN.search(value):
        return ProfileType.X
    for profile_type in (
        ProfileType.LINKEDIN,
        ProfileType.YOUTUBE,
        ProfileType.INSTAGRAM,
        ProfileType.TIKTOK,
        ProfileType.REDDIT,
    ):
        if profile_type.value in value:
            return profile_type
    return None


def _signal_is_trusted(signal: Signal, first: str | None, last: str | None, handle: str) -> bool:
    if handle and normalize_token((signal.author_handle or "").removeprefix("@")) == handle:
        return True
    author = normalize_token(signal.author_name)
    if first and last and first in author and last in author:
        return True
    return bool(handle) and handle in (signal.url or "").lower()


def identity_clue_tokens(
    lead: Lead,
    signals: Iterable[Signal] = (),
    communications: Iterable[Communication] = (),
    limit: int = 28,
) -> list[str]:
    """
    Independent evidence tokens about who the lead is.

    Drawn from role, notes and category plus the text of signals that are
    demonstrably about this lead and of recent communications. The lead's
    own name tokens are excluded since they carry no independent evidence.
    """
    first, last = name_identity(lead.name)
    handle = known_handle(lead)
    sources = [
        lead.role or "",
        lead.notes or "",
        (lead.category or "").replace("_", " "),
    ]
    for signal in signals:
        if _signal_is_trusted(signal, first, last, handle):
            sources.append(signal.title or "")
            sources.append(signal.content or "")
    for communication in communications:
        sources.append(communication.summary or "")
        sources.append(communication.notes or "")

    excluded = {t for t in (first, last) if t}
    tokens = [t for t in extract_identity_tokens(" ".join(sources)) if t not in excluded]
    return tokens[:limit]


class IdentityClueExtractor:
    """
    Loads a lead's history from the store and derives its clue tokens.

    Results are memoized in the caller-supplied cache, which lives on the
    per-run context so nothing leaks between runs.
    """

    SIGNAL_LIMIT = 40
    COMMUNICATION_LIMIT = 10

    def __init__(self, store: Any = None, limit: int = 28) -> None:
        self.store = store
        self.limit = limit

    async def clue_tokens(self, lead: Lead, cache: dict[Any, list[str]]) -> list[str]:
        key = lead.id if lead.id is not None else f"new-{id(lead)}"
        if key in cache:
            return cache[key]

        signals: list[Signal] = []
        communications: list[Communication] = []
        if self.store is not None and lead.id is not None:
            signals = await self.store.list_signals(lead.id, self.SIGNAL_LIMIT)
            communications = await self.store.list_communications(
                lead.id, self.COMMUNICATION_LIMIT
            )

        tokens = identity_clue_tokens(lead, signals, communications, self.limit)
        cache[key] = tokens
        return tokens
