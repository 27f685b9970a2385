"""
Enums and constants used throughout Deep Dive.

All enums use str base class for easy JSON serialization.
"""

from enum import StrEnum


class ProfileType(StrEnum):
    """Platform classification of a profile URL."""

    X = "x"
    LINKEDIN = "linkedin"
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    REDDIT = "reddit"
    WEBSITE = "website"
    OTHER = "other"  # Classified but never accepted


class DeepDiveStatus(StrEnum):
    """Lifecycle status of a lead's deep dive."""

    IDLE = "idle"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


class CandidateSource(StrEnum):
    """Provenance of a candidate URL offered to discovery."""

    LEAD_HANDLE_SEED = "lead_handle_seed"
    LEAD_WEBSITE_SEED = "lead_website_seed"
    EXISTING_PROFILE_SEED = "existing_profile_seed"
    SIGNAL_SEED = "signal_seed"
    COMMUNICATION_SEED = "communication_seed"
    SEARCH_RESULT = "search_result"
    PROFILE_DISCOVERY = "profile_discovery"
    LINK_HUB_DISCOVERY = "link_hub_discovery"


class IdentityVerdict(StrEnum):
    """Verdict returned by the identity validator."""

    ACCEPT = "accept"
    REJECT = "reject"
    UNSURE = "unsure"


class IdentityStrategy(StrEnum):
    """Which branch of the validator produced a decision."""

    USER_SEED = "user_seed"
    HARD_RULE = "hard_rule"
    LLM = "llm"
    HYBRID_RULE = "hybrid_rule"
    FALLBACK = "fallback"
    ERROR = "error"


# Provenance tag for social profile rows owned by the engine
DEEP_DIVE_SOURCE = "deep_dive"

# Profile types that always count as relevant when found on a scraped page
SOCIAL_PROFILE_TYPES = frozenset(
    {
        ProfileType.X,
        ProfileType.LINKEDIN,
        ProfileType.YOUTUBE,
        ProfileType.INSTAGRAM,
        ProfileType.TIKTOK,
        ProfileType.REDDIT,
    }
)

# Sources trusted enough to be accepted by the deterministic fallback
TRUSTED_SEED_SOURCES = frozenset(
    {
        CandidateSource.LEAD_HANDLE_SEED,
        CandidateSource.LEAD_WEBSITE_SEED,
    }
)

# ── URL classification ──────────────────────────────────────────

GENERIC_PROFILE_HANDLES = frozenset(
    {
        "watch",
        "feed",
        "feeds",
        "home",
        "explore",
        "reels",
        "shorts",
        "videos",
        "channel",
        "channels",
        "user",
        "users",
        "about",
        "search",
        "results",
    }
)

WEBSITE_HOST_BLOCKLIST = frozenset(
    {
        "facebook.com",
        "m.facebook.com",
        "fb.com",
        "soundersfc.com",
    }
)

LINK_AGGREGATOR_HOSTS = frozenset(
    {
        "linktr.ee",
        "linktree.com",
        "beacons.ai",
        "beacons.page",
        "bio.site",
        "carrd.co",
        "allmylinks.com",
        "solo.to",
    }
)

SHORTENER_HOSTS = frozenset(
    {
        "t.co",
        "bit.ly",
        "tinyurl.com",
        "ow.ly",
        "buff.ly",
        "lnkd.in",
    }
)

# Hosts whose /search pages are result listings, not identities
SEARCH_ENGINE_HOSTS = frozenset(
    {
        "google.com",
        "bing.com",
        "search.yahoo.com",
        "yandex.com",
        "baidu.com",
    }
)

LINKEDIN_PROFILE_MARKERS = ("in", "company", "school", "showcase")
YOUTUBE_CHANNEL_MARKERS = ("channel", "c", "user")
REDDIT_USER_MARKERS = ("user", "u")

# ── Identity tokens ─────────────────────────────────────────────

IDENTITY_TOKEN_STOPWORDS = frozenset(
    """
    about after all also and are as at away back because been before being but
    can did do does doing done each even every contact few get got had has
    having her here hers him his how i if in into is it its itself just made
    many may me might mine my myself for from of on only or other ours
    ourselves more most new no not now off one once our out over profile same
    she should site so some such that the their theirs them themselves then
    there these they those through too under until up us very was we were what
    when where which while who why will with you your yours yourself
    yourselves this
    """.split()
)
