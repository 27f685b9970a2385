"""
Custom exception hierarchy for Deep Dive.

Provider failures never abort a run: the provider base classes turn them into
failed ProviderResult values and the engine takes its fallback branch. Only
infrastructure errors (a broken database, bad configuration) propagate to the
job wrapper, which records them on the lead.

Hierarchy:
    DeepDiveError
    ├── ProviderError
    │   ├── APIError
    │   │   ├── RateLimitError
    │   │   └── AuthenticationError
    │   └── CompletionError
    ├── DatabaseError
    └── ConfigurationError
        └── MissingAPIKeyError
"""


class DeepDiveError(Exception):
    """Base exception for all Deep Dive errors."""


# ── Provider Errors ───────────────────────────────────────────────

class ProviderError(DeepDiveError):
    """A search, fetch or completion provider failed. Non-fatal."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class APIError(ProviderError):
    """An external API returned an unexpected error response."""

    def __init__(self, api_name: str, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(api_name, f"HTTP {status_code}: {message[:200]}")


class RateLimitError(APIError):
    """
    Rate limit exceeded (HTTP 429).

    Retried with exponential backoff by tenacity in the HTTP adapters.
    """

    def __init__(self, api_name: str, retry_after: int | None = None) -> None:
        self.retry_after = retry_after or 60
        super().__init__(api_name, 429, f"Rate limited. Retry after: {self.retry_after}s")


class AuthenticationError(APIError):
    """Bad or missing credentials. Permanent; do not retry."""

    def __init__(self, api_name: str, message: str = "Authentication failed") -> None:
        super().__init__(api_name, 401, message)


class CompletionError(ProviderError):
    """The completion provider returned nothing usable (empty or malformed JSON)."""


# ── Data Errors ───────────────────────────────────────────────────

class DatabaseError(DeepDiveError):
    """A lead store operation failed."""

    def __init__(self, db: str, operation: str, message: str) -> None:
        self.db = db
        self.operation = operation
        super().__init__(f"[{db}] {operation} failed: {message}")


# ── Configuration Errors ──────────────────────────────────────────

class ConfigurationError(DeepDiveError):
    """Invalid or missing configuration."""

    def __init__(self, setting: str, message: str) -> None:
        self.setting = setting
        super().__init__(f"Configuration error for '{setting}': {message}")


class MissingAPIKeyError(ConfigurationError):
    """
    A required API key is not configured.

    Most providers treat a missing key as a warning result, not an error.
    """

    def __init__(self, api_name: str, env_var: str) -> None:
        self.api_name = api_name
        self.env_var = env_var
        super().__init__(env_var, f"{api_name} API key not configured. Set {env_var} in .env")
