"""
URL classification and canonicalization for profile candidates.

Every candidate URL is reduced to one canonical form per platform so the
same identity found via different links deduplicates to a single entry:

    https://twitter.com/avlinfilms/status/1   -> https://x.com/avlinfilms
    https://www.youtube.com/@avlinfilms/videos -> https://www.youtube.com/@avlinfilms
    https://avlin.studio/work?ref=ig          -> https://avlin.studio/

Parse failures never propagate: every helper returns None/False instead.
"""

import asyncio
import re
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit

import aiohttp

from deep_dive.core.constants import (
    GENERIC_PROFILE_HANDLES,
    LINK_AGGREGATOR_HOSTS,
    LINKEDIN_PROFILE_MARKERS,
    REDDIT_USER_MARKERS,
    SEARCH_ENGINE_HOSTS,
    SHORTENER_HOSTS,
    WEBSITE_HOST_BLOCKLIST,
    YOUTUBE_CHANNEL_MARKERS,
    ProfileType,
)
from deep_dive.core.logging import get_logger
from deep_dive.utils.identity_tokens import normalize_token, platform_profile_type

logger = get_logger(__name__)

_HTTP_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_BARE_DOMAIN = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}(/.*)?$", re.IGNORECASE)
_REDIRECT_STATUSES = {301, 302, 303, 307, 308}


def _split(url: str | None) -> SplitResult | None:
    if not url:
        return None
    try:
        parts = urlsplit(str(url).strip())
    except ValueError:
        return None
    if not parts.hostname:
        return None
    return parts


def host_of(url: str | None) -> str:
    """Lowercase host of ``url``, or '' when it cannot be parsed."""
    parts = _split(url)
    return parts.hostname or "" if parts else ""


def _bare_host(url: str | None) -> str:
    return host_of(url).removeprefix("www.")


def _matches_host(host: str, candidates: frozenset[str]) -> bool:
    return any(host == c or host.endswith(f".{c}") for c in candidates)


def path_segments(url: str | None) -> list[str]:
    parts = _split(url)
    if parts is None:
        return []
    return [segment for segment in parts.path.split("/") if segment]


def is_generic_handle(handle: str | None) -> bool:
    """True for blank handles and placeholder paths (watch, feed, about, ...)."""
    normalized = normalize_token(handle)
    return not normalized or normalized in GENERIC_PROFILE_HANDLES


def normalize_url(raw: str | None) -> str | None:
    """
    Accept absolute http(s) URLs with a host, drop the fragment.

    DuckDuckGo redirect/result URLs are rejected.
    """
    value = (raw or "").strip()
    if not value or not _HTTP_PREFIX.match(value) or any(c.isspace() for c in value):
        return None
    parts = _split(value)
    if parts is None or "duckduckgo.com" in parts.hostname:
        return None
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))


def classify(url: str | None) -> ProfileType | None:
    """
    Classify a URL's platform.

    Returns None for search-engine result pages and unparseable URLs,
    ProfileType.OTHER for known non-identity social hosts.
    """
    parts = _split(url)
    if parts is None:
        return None
    host = parts.hostname
    bare = host.removeprefix("www.")
    if "duckduckgo.com" in host:
        return None
    if _matches_host(bare, SEARCH_ENGINE_HOSTS) and parts.path.startswith("/search"):
        return None

    if host in ("x.com", "twitter.com") or host.endswith((".x.com", ".twitter.com")):
        return ProfileType.X
    if "linkedin.com" in host:
        return ProfileType.LINKEDIN
    if "youtube.com" in host or host == "youtu.be":
        return ProfileType.YOUTUBE
    if "instagram.com" in host:
        return ProfileType.INSTAGRAM
    if "tiktok.com" in host:
        return ProfileType.TIKTOK
    if "reddit.com" in host:
        return ProfileType.REDDIT
    if "facebook.com" in host or host == "fb.com":
        return ProfileType.OTHER
    return ProfileType.WEBSITE


def is_link_aggregator(url: str | None) -> bool:
    host = _bare_host(url)
    return bool(host) and _matches_host(host, LINK_AGGREGATOR_HOSTS)


def same_host(first: str | None, second: str | None) -> bool:
    first_host = host_of(first)
    return bool(first_host) and first_host == host_of(second)


def _marker_index(segments: list[str], markers: tuple[str, ...]) -> int | None:
    for index, segment in enumerate(segments):
        if segment.lower() in markers:
            return index
    return None


def _canonical_youtube(segments: list[str]) -> str | None:
    first = segments[0]
    if first.startswith("@"):
        return f"https://www.youtube.com/{first}"
    if first.lower() in YOUTUBE_CHANNEL_MARKERS and len(segments) > 1:
        if is_generic_handle(segments[1]):
            return None
        return f"https://www.youtube.com/{first.lower()}/{segments[1]}"
    return f"https://www.youtube.com/@{first}"


def canonicalize(url: str | None, profile_type: ProfileType | str) -> str | None:
    """Reduce ``url`` to the canonical identity URL for ``profile_type``, or None."""
    parts = _split(url)
    if parts is None:
        return None
    try:
        profile_type = ProfileType(profile_type)
    except ValueError:
        return None
    segments = [segment for segment in parts.path.split("/") if segment]

    if profile_type == ProfileType.WEBSITE:
        host = parts.hostname
        if host.removeprefix("www.") in WEBSITE_HOST_BLOCKLIST:
            return None
        if is_link_aggregator(url):
            slug = segments[0].removeprefix("@") if segments else ""
            return f"{parts.scheme}://{host}/{slug}" if slug else None
        return f"{parts.scheme}://{host}/"

    if not segments:
        return None

    canonical: str | None
    if profile_type == ProfileType.X:
        canonical = f"https://x.com/{segments[0].removeprefix('@')}"
    elif profile_type == ProfileType.LINKEDIN:
        marker = _marker_index(segments, LINKEDIN_PROFILE_MARKERS)
        if marker is None or marker + 1 >= len(segments):
            return None
        canonical = f"https://www.linkedin.com/{segments[marker].lower()}/{segments[marker + 1]}"
    elif profile_type == ProfileType.YOUTUBE:
        canonical = _canonical_youtube(segments)
    elif profile_type == ProfileType.INSTAGRAM:
        canonical = f"https://www.instagram.com/{segments[0].removeprefix('@')}"
    elif profile_type == ProfileType.TIKTOK:
        canonical = f"https://www.tiktok.com/@{segments[0].removeprefix('@')}"
    elif profile_type == ProfileType.REDDIT:
        if segments[0].lower() in REDDIT_USER_MARKERS and len(segments) > 1:
            canonical = f"https://www.reddit.com/user/{segments[1]}"
        else:
            canonical = f"https://www.reddit.com/user/{segments[0]}"
    else:
        return None

    if canonical is None or is_generic_handle(extract_handle(canonical, profile_type)):
        return None
    return canonical


def extract_handle(url: str | None, profile_type: ProfileType | str) -> str | None:
    """The identity-bearing path segment of a profile URL. Websites have none."""
    segments = path_segments(url)
    if not segments:
        return None
    first = segments[0]

    if profile_type in (ProfileType.X, ProfileType.INSTAGRAM):
        return first
    if profile_type == ProfileType.TIKTOK:
        return first.removeprefix("@")
    if profile_type == ProfileType.REDDIT:
        if first.lower() in REDDIT_USER_MARKERS and len(segments) > 1:
            return segments[1]
        return first
    if profile_type == ProfileType.LINKEDIN:
        marker = _marker_index(segments, LINKEDIN_PROFILE_MARKERS)
        if marker is not None and marker + 1 < len(segments):
            return segments[marker + 1]
        return first
    if profile_type == ProfileType.YOUTUBE:
        if first.startswith("@"):
            return first.removeprefix("@")
        if first.lower() in YOUTUBE_CHANNEL_MARKERS and len(segments) > 1:
            return segments[1]
        return first
    return None


def handle_url(handle: str | None, platform: str | None) -> str | None:
    """
    Synthesize a profile URL from a lead's stated handle and platform.

    Full URLs pass through unchanged. Handles for unknown platforms become
    ``https://<handle>`` only when they look like a domain.
    """
    value = (handle or "").strip()
    if not value:
        return None
    if _HTTP_PREFIX.match(value):
        return value

    cleaned = value.removeprefix("@")
    profile_type = platform_profile_type(platform)
    if profile_type == ProfileType.X:
        return f"https://x.com/{cleaned}"
    if profile_type == ProfileType.LINKEDIN:
        return f"https://www.linkedin.com/in/{cleaned}"
    if profile_type == ProfileType.YOUTUBE:
        return f"https://www.youtube.com/@{cleaned.removeprefix('@')}"
    if profile_type == ProfileType.INSTAGRAM:
        return f"https://www.instagram.com/{cleaned}"
    if profile_type == ProfileType.TIKTOK:
        return f"https://www.tiktok.com/@{cleaned}"
    if profile_type == ProfileType.REDDIT:
        return f"https://www.reddit.com/user/{cleaned}"
    return f"https://{cleaned}" if "." in cleaned else None


def seed_website(raw: str | None) -> str | None:
    """Lead website as a URL; bare domains get an https:// scheme."""
    value = (raw or "").strip()
    if not value:
        return None
    if _HTTP_PREFIX.match(value):
        return value
    if _BARE_DOMAIN.match(value):
        return f"https://{value}"
    return value


class UrlExpander:
    """
    Resolves link-shortener URLs (t.co, bit.ly, ...) to their destination.

    Follows at most ``redirect_limit`` hops with HEAD requests and falls back
    to the input URL on any failure. Non-shortener URLs are returned as-is
    without touching the network.
    """

    def __init__(self, redirect_limit: int = 3, timeout_seconds: float = 10.0) -> None:
        self.redirect_limit = redirect_limit
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds, connect=4, sock_read=6)

    @staticmethod
    def is_short_url(url: str) -> bool:
        return _bare_host(url) in SHORTENER_HOSTS

    async def expand(self, url: str) -> str:
        if not self.is_short_url(url):
            return url

        current = url
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                for _ in range(self.redirect_limit):
                    async with session.head(current, allow_redirects=False) as resp:
                        if resp.status not in _REDIRECT_STATUSES:
                            break
                        location = (resp.headers.get("Location") or "").strip()
                    if not location:
                        break
                    target = urljoin(current, location)
                    if urlsplit(target).scheme not in ("http", "https"):
                        break
                    current = target
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("short_url_expand_failed", url=url, error=str(e))
            return url

        return normalize_url(current) or url
