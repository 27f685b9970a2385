"""
Centralized configuration management.

Loads settings from:
1. .env file (secrets, API keys, storage paths)
2. config.yaml (provider-level fine-grained settings)

Usage:
    from deep_dive.core.config import settings, get_module_setting
    print(settings.ai_provider)
    print(get_module_setting("search", "duckduckgo", "region", "us-en"))
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.

    All API keys are optional. Providers check availability at runtime and
    the engine falls back to deterministic behaviour when they are missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────
    app_env: str = "development"
    log_level: str = "INFO"
    log_format: str = "text"
    data_dir: Path = Path("./data")
    database_path: Path | None = None
    request_timeout_seconds: int = 30
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
    )

    # ── Search ─────────────────────────────────────────────────
    search_provider: str = "duckduckgo"
    serpapi_api_key: SecretStr | None = None
    serpapi_base_url: str = "https://serpapi.com/search.json"
    serpapi_location: str | None = None

    # ── AI ─────────────────────────────────────────────────────
    ai_provider: str = "openai"
    openai_api_key: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None
    openrouter_api_key: SecretStr | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_app_name: str | None = "deep_dive"
    ollama_endpoint: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    ai_model: str = "gpt-4.1-mini"
    ai_max_tokens: int = 1500

    # ── Engine tunables ────────────────────────────────────────
    max_search_results: int = 30
    search_results_per_query: int = 10
    max_urls_per_type: int = 2
    max_dossiers: int = 14
    max_highlights: int = 6
    max_query_count: int = 10
    max_search_warnings: int = 4
    profile_expansion_waves: int = 3
    identity_min_confidence: float = 0.82
    identity_reason_max_len: int = 280
    website_clue_matches_required: int = 2
    max_identity_clue_tokens: int = 28
    short_url_redirect_limit: int = 3

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return v.upper()

    @field_validator("ai_provider")
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        valid = {"anthropic", "openai", "openrouter", "ollama", "none"}
        if v.lower() not in valid:
            raise ValueError(f"ai_provider must be one of {valid}")
        return v.lower()

    @field_validator("search_provider")
    @classmethod
    def validate_search_provider(cls, v: str) -> str:
        valid = {"duckduckgo", "serpapi"}
        if v.lower() not in valid:
            raise ValueError(f"search_provider must be one of {valid}")
        return v.lower()

    @model_validator(mode="after")
    def ensure_data_dir_exists(self) -> "Settings":
        """Create the data directory on startup."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self

    def __getattribute__(self, name: str) -> Any:
        """Allow environment variables to override loaded settings at runtime."""
        value = super().__getattribute__(name)
        if name.startswith("_"):
            return value

        cls = super().__getattribute__("__class__")
        fields = getattr(cls, "model_fields", {})
        if name not in fields:
            return value

        raw = os.getenv(name.upper())
        if raw is None:
            return value

        annotation_text = str(fields[name].annotation)
        if isinstance(value, SecretStr) or "SecretStr" in annotation_text:
            return SecretStr(raw)
        if isinstance(value, bool):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        if isinstance(value, (int, float)):
            try:
                return type(value)(raw)
            except ValueError:
                return value
        if isinstance(value, Path) or "Path" in annotation_text:
            return Path(raw)
        return raw

    @property
    def resolved_database_path(self) -> Path:
        """SQLite file used by the persistent lead store."""
        return self.database_path or (self.data_dir / "deep_dive.db")

    def has_api_key(self, key_name: str) -> bool:
        """Check if a given API key is configured (not None/empty)."""
        value = getattr(self, key_name, None)
        if value is None:
            return False
        if isinstance(value, SecretStr):
            return bool(value.get_secret_value().strip())
        return bool(value)

    @classmethod
    def load_module_config(cls, config_path: Path | None = None) -> dict[str, Any]:
        """
        Load config.yaml for provider-specific settings.

        Returns an empty dict if config.yaml does not exist.
        """
        path = config_path or Path("config.yaml")
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}
        return {}


@dataclass(frozen=True)
class DeepDiveLimits:
    """Engine caps and thresholds, passed explicitly into each run."""

    max_search_results: int = 30
    search_results_per_query: int = 10
    max_urls_per_type: int = 2
    max_dossiers: int = 14
    max_highlights: int = 6
    max_query_count: int = 10
    max_search_warnings: int = 4
    profile_expansion_waves: int = 3
    identity_min_confidence: float = 0.82
    identity_reason_max_len: int = 280
    website_clue_matches_required: int = 2
    max_identity_clue_tokens: int = 28
    short_url_redirect_limit: int = 3

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "DeepDiveLimits":
        source = source or settings
        return cls(
            max_search_results=source.max_search_results,
            search_results_per_query=source.search_results_per_query,
            max_urls_per_type=source.max_urls_per_type,
            max_dossiers=source.max_dossiers,
            max_highlights=source.max_highlights,
            max_query_count=source.max_query_count,
            max_search_warnings=source.max_search_warnings,
            profile_expansion_waves=source.profile_expansion_waves,
            identity_min_confidence=source.identity_min_confidence,
            identity_reason_max_len=source.identity_reason_max_len,
            website_clue_matches_required=source.website_clue_matches_required,
            max_identity_clue_tokens=source.max_identity_clue_tokens,
            short_url_redirect_limit=source.short_url_redirect_limit,
        )


# ── Singletons ────────────────────────────────────────────────────
settings = Settings()
module_config: dict[str, Any] = Settings.load_module_config()


def get_module_setting(
    category: str, module: str, key: str, default: Any = None
) -> Any:
    """
    Convenience accessor for nested provider config.

    Example:
        region = get_module_setting("search", "duckduckgo", "region", "us-en")
        max_links = get_module_setting("fetch", "http", "max_links", 30)
    """
    return (
        module_config.get("providers", {})
        .get(category, {})
        .get(module, {})
        .get(key, default)
    )
