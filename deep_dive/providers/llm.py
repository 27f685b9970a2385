"""
LLM-backed structured completion provider.

Routes a (system, user, json_schema) request to the configured backend:
  - openai:     chat completions with a strict json_schema response format
  - openrouter: same API through OpenRouter's OpenAI-compatible endpoint
  - anthropic:  messages API, schema embedded in the system prompt
  - ollama:     /api/chat with ``format`` set to the schema

Responses are parsed as JSON (also from inside ``` fences). Anything that
does not parse into an object is a failed result.
"""

from __future__ import annotations

import json
import re
from typing import Any

import aiohttp

from deep_dive.core.config import settings
from deep_dive.core.exceptions import CompletionError, MissingAPIKeyError
from deep_dive.core.logging import get_logger
from deep_dive.providers.base import CompletionProvider, ProviderResult

logger = get_logger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def parse_json_object(text: str | None) -> dict[str, Any] | None:
    """Parse a JSON object from raw model output, tolerating code fences and preamble."""
    if not text or not text.strip():
        return None
    candidates = [text.strip()]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.insert(0, fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class LLMCompletionProvider(CompletionProvider):
    """Structured JSON completions from the configured LLM backend."""

    def __init__(self, provider: str | None = None, model: str | None = None) -> None:
        self.provider = (provider or settings.ai_provider).lower()
        self.name = self.provider
        if self.provider == "ollama":
            self.model = model or settings.ollama_model
        else:
            self.model = model or settings.ai_model

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, Any],
    ) -> ProviderResult[dict[str, Any]]:
        if self.provider == "anthropic":
            text = await self._call_anthropic(system_prompt, user_prompt, json_schema)
        elif self.provider == "openai":
            text = await self._call_openai(system_prompt, user_prompt, json_schema)
        elif self.provider == "openrouter":
            text = await self._call_openrouter(system_prompt, user_prompt, json_schema)
        elif self.provider == "ollama":
            text = await self._call_ollama(system_prompt, user_prompt, json_schema)
        else:
            raise CompletionError(self.provider, f"Unsupported AI provider: {self.provider}")

        parsed = parse_json_object(text)
        if parsed is None:
            raise CompletionError(self.provider, "response was not a JSON object")
        return ProviderResult.ok(parsed, source=self.provider)

    @staticmethod
    def _response_format(json_schema: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {"name": "response_payload", "schema": json_schema, "strict": True},
        }

    async def _call_openai(
        self, system_prompt: str, user_prompt: str, json_schema: dict[str, Any]
    ) -> str:
        from openai import AsyncOpenAI

        if not settings.has_api_key("openai_api_key"):
            raise MissingAPIKeyError("OpenAI", "OPENAI_API_KEY")

        client = AsyncOpenAI(api_key=settings.openai_api_key.get_secret_value())
        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=settings.ai_max_tokens,
            response_format=self._response_format(json_schema),
        )
        return response.choices[0].message.content or ""

    async def _call_openrouter(
        self, system_prompt: str, user_prompt: str, json_schema: dict[str, Any]
    ) -> str:
        """Call OpenRouter using its OpenAI-compatible chat completions API."""
        from openai import AsyncOpenAI

        if not settings.has_api_key("openrouter_api_key"):
            raise MissingAPIKeyError("OpenRouter", "OPENROUTER_API_KEY")

        headers: dict[str, str] = {}
        if settings.openrouter_app_name:
            headers["X-Title"] = settings.openrouter_app_name

        client = AsyncOpenAI(
            api_key=settings.openrouter_api_key.get_secret_value(),
            base_url=settings.openrouter_base_url.rstrip("/"),
            default_headers=headers or None,
        )
        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=settings.ai_max_tokens,
            response_format=self._response_format(json_schema),
        )
        return response.choices[0].message.content or ""

    async def _call_anthropic(
        self, system_prompt: str, user_prompt: str, json_schema: dict[str, Any]
    ) -> str:
        from anthropic import AsyncAnthropic

        if not settings.has_api_key("anthropic_api_key"):
            raise MissingAPIKeyError("Anthropic", "ANTHROPIC_API_KEY")

        client = AsyncAnthropic(api_key=settings.anthropic_api_key.get_secret_value())
        response = await client.messages.create(
            model=self.model,
            max_tokens=settings.ai_max_tokens,
            system=(
                f"{system_prompt}\n\nRespond with a single JSON object matching this schema:\n"
                f"{json.dumps(json_schema)}"
            ),
            messages=[{"role": "user", "content": user_prompt}],
        )
        content = response.content[0]
        return content.text if hasattr(content, "text") else str(content)

    async def _call_ollama(
        self, system_prompt: str, user_prompt: str, json_schema: dict[str, Any]
    ) -> str:
        """Call a local Ollama server with schema-constrained output."""
        endpoint = settings.ollama_endpoint.rstrip("/")
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "format": json_schema,
            "stream": False,
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(
                f"{endpoint}/api/chat",
                json=payload,
                timeout=aiohttp.ClientTimeout(total=120),
            ) as r:
                r.raise_for_status()
                data = await r.json()
        return (data.get("message") or {}).get("content", "")
