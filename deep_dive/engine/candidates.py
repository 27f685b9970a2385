"""
The candidate link map: accepted canonical URLs per profile type.

Each type holds an ordered list bounded by ``cap``. When the website slot
is full, try_insert applies the eviction rule: the lead's own website
always gets in, and any other non-hub website may displace a link
aggregator, never the other way round.
"""

from collections.abc import Iterator

from deep_dive.core.constants import CandidateSource, ProfileType
from deep_dive.utils.urls import is_link_aggregator


class CandidateMap:
    """ProfileType -> bounded ordered list of canonical URLs."""

    def __init__(self, cap: int = 2) -> None:
        self.cap = cap
        self._slots: dict[ProfileType, list[str]] = {t: [] for t in ProfileType}

    def urls(self, profile_type: ProfileType | str) -> list[str]:
        return list(self._slots[ProfileType(profile_type)])

    def contains(self, profile_type: ProfileType | str, url: str) -> bool:
        return url in self._slots[ProfileType(profile_type)]

    def try_insert(
        self,
        profile_type: ProfileType | str,
        url: str,
        source: CandidateSource | str,
    ) -> bool:
        """Insert ``url`` if there is room or an evictable slot; returns True when stored."""
        profile_type = ProfileType(profile_type)
        slot = self._slots[profile_type]
        if url in slot:
            return False
        if len(slot) < self.cap:
            slot.append(url)
            return True
        if profile_type != ProfileType.WEBSITE:
            return False

        hub_index = next((i for i, existing in enumerate(slot) if is_link_aggregator(existing)), None)
        if source == CandidateSource.LEAD_WEBSITE_SEED:
            slot[hub_index if hub_index is not None else 0] = url
            return True
        if hub_index is not None and not is_link_aggregator(url):
            slot[hub_index] = url
            return True
        return False

    def pairs(self) -> Iterator[tuple[ProfileType, str]]:
        for profile_type, urls in self._slots.items():
            for url in urls:
                yield profile_type, url

    def non_empty_types(self) -> list[ProfileType]:
        return [t for t, urls in self._slots.items() if urls]

    def as_dict(self) -> dict[str, list[str]]:
        return {t.value: list(urls) for t, urls in self._slots.items()}

    def __len__(self) -> int:
        return sum(len(urls) for urls in self._slots.values())

    def __repr__(self) -> str:
        return f"CandidateMap({self.as_dict()!r})"
