"""Adapter lookup table keyed by provider name."""

from __future__ import annotations

import httpx

from assistant_core.config import Settings
from assistant_core.providers.anthropic import AnthropicAdapter
from assistant_core.providers.base import ProviderAdapter
from assistant_core.providers.errors import UnknownProviderError
from assistant_core.providers.gemini import GeminiAdapter
from assistant_core.providers.openai_compat import OpenAICompatibleAdapter


class ProviderRegistry:
    """Stores one adapter per provider; the orchestration core only sees this."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        self._client = client

    def register(self, adapter: ProviderAdapter) -> None:
        if adapter.name in self._adapters:
            raise ValueError(f"Provider already registered: {adapter.name}")
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> ProviderAdapter:
        adapter = self._adapters.get(name)
        if adapter is None:
            raise UnknownProviderError(name)
        return adapter

    def names(self) -> list[str]:
        return list(self._adapters)

    def __contains__(self, name: object) -> bool:
        return name in self._adapters

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


def build_provider_registry(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> ProviderRegistry:
    """Register the stock adapters for every configured provider endpoint."""
    client = client or httpx.AsyncClient(
        timeout=httpx.Timeout(settings.resilience.provider_timeout_seconds)
    )
    registry = ProviderRegistry(client)
    endpoints = settings.providers

    for name, endpoint in endpoints.items():
        if name == "anthropic":
            registry.register(AnthropicAdapter(client, endpoint.base_url))
        elif name == "google":
            registry.register(GeminiAdapter(client, endpoint.base_url))
        elif name == "openrouter":
            registry.register(
                OpenAICompatibleAdapter(
                    name,
                    client,
                    endpoint.base_url,
                    extra_headers={"HTTP-Referer": settings.app_url, "X-Title": "assistant-core"},
                )
            )
        elif name == "moonshot":
            # Moonshot only accepts temperature 0 or 1.
            registry.register(
                OpenAICompatibleAdapter(name, client, endpoint.base_url, fixed_temperature=1)
            )
        elif name == "perplexity":
            registry.register(
                OpenAICompatibleAdapter(name, client, endpoint.base_url, supports_tools=False)
            )
        else:
            registry.register(OpenAICompatibleAdapter(name, client, endpoint.base_url))
    return registry
