from __future__ import annotations

from collections.abc import Iterable

import pytest

from assistant_core.agent.resilient import ResilientCaller
from assistant_core.config import ResilienceConfig, Settings
from assistant_core.providers.base import ProviderAdapter, ProviderRequest
from assistant_core.providers.credentials import CredentialResolver, EnvironmentCredentials
from assistant_core.providers.registry import ProviderRegistry
from assistant_core.types import ProviderResult


class ScriptedAdapter(ProviderAdapter):
    """Adapter double that replays scripted results or raises scripted errors."""

    def __init__(self, name: str, script: Iterable[ProviderResult | Exception] = ()) -> None:
        self.name = name
        self.script = list(script)
        self.requests: list[ProviderRequest] = []
        self.api_keys: list[str] = []

    async def complete(self, request: ProviderRequest, *, api_key: str) -> ProviderResult:
        self.requests.append(request)
        self.api_keys.append(api_key)
        step = self.script.pop(0) if self.script else ProviderResult(text=f"{self.name} says hi")
        if isinstance(step, Exception):
            raise step
        return step

    @property
    def calls(self) -> int:
        return len(self.requests)


ALL_KEYS = {
    "OPENAI_API_KEY": "sk-openai",
    "ANTHROPIC_API_KEY": "sk-anthropic",
    "GEMINI_API_KEY": "sk-gemini",
    "OPENROUTER_API_KEY": "sk-openrouter",
    "GROQ_API_KEY": "sk-groq",
    "MOONSHOT_API_KEY": "sk-moonshot",
    "PERPLEXITY_API_KEY": "sk-perplexity",
}


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def adapters() -> dict[str, ScriptedAdapter]:
    names = ["openai", "anthropic", "google", "openrouter", "groq", "moonshot", "perplexity"]
    return {name: ScriptedAdapter(name) for name in names}


def make_registry(adapters: dict[str, ScriptedAdapter]) -> ProviderRegistry:
    registry = ProviderRegistry()
    for adapter in adapters.values():
        registry.register(adapter)
    return registry


def make_caller(
    adapters: dict[str, ScriptedAdapter],
    settings: Settings,
    *,
    environ: dict[str, str] | None = None,
    sleep: SleepRecorder | None = None,
    resilience: ResilienceConfig | None = None,
) -> ResilientCaller:
    credentials = CredentialResolver(
        [EnvironmentCredentials(settings.providers, ALL_KEYS if environ is None else environ)]
    )
    return ResilientCaller(
        make_registry(adapters),
        credentials,
        resilience or settings.resilience,
        reliable_providers=settings.tool_routing.reliable_providers,
        sleep=sleep or SleepRecorder(),
    )
