import pytest
from pydantic import ValidationError

from assistant_core.config import AppHTTPSettings, Settings


def test_defaults_need_no_environment() -> None:
    settings = Settings()

    assert settings.routing.default_model == "gpt-4.1"
    assert settings.resilience.max_rate_limit_retries == 1
    assert settings.compaction.keep_recent == 6
    assert settings.tool_routing.reliable_providers == {"openai", "anthropic"}
    assert set(settings.providers) == {
        "openai",
        "anthropic",
        "google",
        "openrouter",
        "groq",
        "moonshot",
        "perplexity",
    }


def test_nested_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ASSISTANT_COST_POLICY__DAILY_BUDGET_USD", "5")
    monkeypatch.setenv("ASSISTANT_COMPACTION__TOKEN_THRESHOLD", "1200")
    monkeypatch.setenv("ASSISTANT_APP_HTTP__LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.cost_policy.daily_budget_usd == 5.0
    assert settings.compaction.token_threshold == 1200
    assert settings.app_http.log_level == "DEBUG"


def test_invalid_log_level_rejected() -> None:
    with pytest.raises(ValidationError):
        AppHTTPSettings(log_level="chatty")
