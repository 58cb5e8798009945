from assistant_core.config import Settings
from assistant_core.providers.credentials import (
    CredentialResolver,
    EnvironmentCredentials,
    UserOverrideCredentials,
)
from assistant_core.stores import InMemoryUserKeyStore


def _resolver(environ: dict[str, str], store: InMemoryUserKeyStore) -> CredentialResolver:
    providers = Settings().providers
    return CredentialResolver(
        [EnvironmentCredentials(providers, environ), UserOverrideCredentials(providers, store)]
    )


def test_environment_key_wins_over_user_override() -> None:
    store = InMemoryUserKeyStore()
    store.set("u1", "openai", "sk-user")
    resolver = _resolver({"OPENAI_API_KEY": "sk-env"}, store)

    assert resolver.resolve("openai", "u1") == "sk-env"


def test_user_override_used_when_environment_missing() -> None:
    store = InMemoryUserKeyStore()
    store.set("u1", "gemini", "sk-user-gemini")
    resolver = _resolver({}, store)

    assert resolver.resolve("google", "u1") == "sk-user-gemini"
    assert resolver.resolve("google", "someone-else") is None
    assert resolver.resolve("google") is None


def test_empty_values_and_unknown_providers_resolve_to_none() -> None:
    resolver = _resolver({"GROQ_API_KEY": ""}, InMemoryUserKeyStore())

    assert resolver.resolve("groq") is None
    assert resolver.resolve("not-a-provider") is None
    assert resolver.has("groq") is False


def test_failing_strategy_is_skipped() -> None:
    class Broken:
        def lookup(self, provider: str, user_id: str | None) -> str | None:
            raise RuntimeError("store offline")

    providers = Settings().providers
    resolver = CredentialResolver(
        [Broken(), EnvironmentCredentials(providers, {"ANTHROPIC_API_KEY": "sk-a"})]
    )

    assert resolver.resolve("anthropic") == "sk-a"
