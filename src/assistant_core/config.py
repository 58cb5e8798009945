"""Configuration models for the request-orchestration core."""

from __future__ import annotations

import logging

import pydantic_settings
from pydantic import BaseModel, Field, field_validator


class AppHTTPSettings(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(
        default=None, description="Override log format: True=JSON, False=console, None=auto"
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in logging.getLevelNamesMapping():
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class TierModels(BaseModel):
    """Model used for each complexity tier when the caller kept the default."""

    simple: str = "or:google/gemini-3-flash-preview"
    moderate: str = "gpt-4.1-mini"
    complex: str = "kimi-k2.5"


class RoutingConfig(BaseModel):
    """Configures complexity-tier routing."""

    default_model: str = "gpt-4.1"
    tier_models: TierModels = Field(default_factory=TierModels)


class CostPolicyConfig(BaseModel):
    """Configures pre-call cost estimation and budget downgrades."""

    enabled: bool = True
    daily_budget_usd: float = Field(default=2.0, ge=0.0)
    session_budget_usd: float = Field(default=0.5, ge=0.0)
    estimated_input_tokens: int = Field(default=900, ge=0)
    estimated_output_tokens: int = Field(default=500, ge=0)
    tiers: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "simple": ["or:google/gemini-3-flash-preview", "gpt-4.1-nano"],
            "moderate": ["gpt-4.1-mini", "or:google/gemini-3-flash-preview"],
            "complex": ["kimi-k2.5", "gpt-4.1"],
            "tool_call": ["gpt-4.1-mini", "gpt-4.1"],
            "critical": ["claude-opus-4-6", "gpt-4.1"],
        }
    )
    alert_thresholds: list[float] = Field(default_factory=lambda: [0.5, 0.75, 1.0])


class FallbackEntry(BaseModel):
    provider: str
    model: str


class ResilienceConfig(BaseModel):
    """Configures retry-in-place and the cross-provider fallback chain."""

    max_rate_limit_retries: int = Field(default=1, ge=0)
    backoff_base_seconds: float = Field(default=1.0, ge=0.0)
    backoff_cap_seconds: float = Field(default=5.0, ge=0.0)
    provider_timeout_seconds: float = Field(default=45.0, gt=0.0)
    request_deadline_seconds: float = Field(default=60.0, gt=0.0)
    fallback_chain: list[FallbackEntry] = Field(
        default_factory=lambda: [
            FallbackEntry(provider="anthropic", model="claude-opus-4-6"),
            FallbackEntry(provider="openai", model="gpt-4.1"),
            FallbackEntry(provider="google", model="gemini-2.5-flash"),
            FallbackEntry(provider="openrouter", model="or:google/gemini-3-flash-preview"),
        ]
    )


class ToolRoutingConfig(BaseModel):
    """Configures the tool-reliability upgrade and response-intent retry."""

    reliable_providers: set[str] = Field(default_factory=lambda: {"openai", "anthropic"})
    capable_provider: str = "openai"
    capable_model: str = "gpt-4.1-mini"
    history_window: int = Field(default=8, ge=1)


class CompactionConfig(BaseModel):
    """Configures conversation compaction."""

    token_threshold: int = Field(default=3000, ge=1)
    keep_recent: int = Field(default=6, ge=1)
    per_message_overhead: int = Field(default=4, ge=0)
    summary_model: str = "or:google/gemini-3-flash-preview"
    summary_max_tokens: int = Field(default=300, ge=16)


class ApprovalConfig(BaseModel):
    """Tool-name prefixes that need explicit approval before execution."""

    sensitive_prefixes: list[str] = Field(
        default_factory=lambda: [
            "send_email",
            "post_",
            "publish_",
            "delete_",
            "archive_",
            "remove_",
            "execute_",
        ]
    )


class AgentConfig(BaseModel):
    """Configures the bounded client-side agent loop."""

    max_rounds: int = Field(default=5, ge=1)
    tool_retries: int = Field(default=2, ge=0)
    tool_retry_delay_seconds: float = Field(default=0.5, ge=0.0)


class ProviderEndpoint(BaseModel):
    base_url: str
    env_key: str
    user_key_id: str


def _default_providers() -> dict[str, ProviderEndpoint]:
    return {
        "openai": ProviderEndpoint(
            base_url="https://api.openai.com/v1", env_key="OPENAI_API_KEY", user_key_id="openai"
        ),
        "anthropic": ProviderEndpoint(
            base_url="https://api.anthropic.com/v1",
            env_key="ANTHROPIC_API_KEY",
            user_key_id="anthropic",
        ),
        "google": ProviderEndpoint(
            base_url="https://generativelanguage.googleapis.com/v1beta",
            env_key="GEMINI_API_KEY",
            user_key_id="gemini",
        ),
        "openrouter": ProviderEndpoint(
            base_url="https://openrouter.ai/api/v1",
            env_key="OPENROUTER_API_KEY",
            user_key_id="openrouter",
        ),
        "groq": ProviderEndpoint(
            base_url="https://api.groq.com/openai/v1", env_key="GROQ_API_KEY", user_key_id="groq"
        ),
        "moonshot": ProviderEndpoint(
            base_url="https://api.moonshot.ai/v1",
            env_key="MOONSHOT_API_KEY",
            user_key_id="moonshot",
        ),
        "perplexity": ProviderEndpoint(
            base_url="https://api.perplexity.ai",
            env_key="PERPLEXITY_API_KEY",
            user_key_id="perplexity",
        ),
    }


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="ASSISTANT_", env_nested_delimiter="__"
    )

    app_http: AppHTTPSettings = Field(default_factory=AppHTTPSettings)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    cost_policy: CostPolicyConfig = Field(default_factory=CostPolicyConfig)
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)
    tool_routing: ToolRoutingConfig = Field(default_factory=ToolRoutingConfig)
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    providers: dict[str, ProviderEndpoint] = Field(default_factory=_default_providers)
    app_url: str = "http://localhost:3000"
