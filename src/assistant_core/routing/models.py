"""Text model catalog and model -> provider resolution."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TextModel:
    id: str
    label: str
    provider: str
    router_id: str | None = None


TEXT_MODELS: tuple[TextModel, ...] = (
    TextModel("gpt-5.2", "GPT-5.2", "openai"),
    TextModel("gpt-4.1", "GPT-4.1", "openai"),
    TextModel("gpt-4.1-mini", "GPT-4.1 Mini", "openai"),
    TextModel("gpt-4.1-nano", "GPT-4.1 Nano", "openai"),
    TextModel("gpt-4o", "GPT-4o", "openai"),
    TextModel("gpt-4o-mini", "GPT-4o Mini", "openai"),
    TextModel("o3-mini", "o3-mini", "openai"),
    TextModel("claude-opus-4-6", "Claude Opus 4.6", "anthropic"),
    TextModel("claude-sonnet-4-5-20250929", "Claude Sonnet 4.5", "anthropic"),
    TextModel("claude-haiku-4-5-20251001", "Claude Haiku 4.5", "anthropic"),
    TextModel("sonar", "Sonar", "perplexity"),
    TextModel("sonar-pro", "Sonar Pro", "perplexity"),
    TextModel("sonar-reasoning-pro", "Sonar Reasoning Pro", "perplexity"),
    TextModel("gemini-2.5-pro", "Gemini 2.5 Pro", "google"),
    TextModel("gemini-2.5-flash", "Gemini 2.5 Flash", "google"),
    TextModel("kimi-k2.5", "Kimi K2.5", "moonshot"),
    TextModel("groq:llama-3.3-70b-versatile", "Groq Llama 3.3 70B", "groq"),
    TextModel("groq:mixtral-8x7b-32768", "Groq Mixtral 8x7B", "groq"),
    TextModel("or:deepseek/deepseek-v3.2", "DeepSeek V3.2", "openrouter", "deepseek/deepseek-v3.2"),
    TextModel("or:deepseek/deepseek-r1", "DeepSeek R1", "openrouter", "deepseek/deepseek-r1"),
    TextModel("or:moonshotai/kimi-k2.5", "Kimi K2.5 (OR)", "openrouter", "moonshotai/kimi-k2.5"),
    TextModel("or:x-ai/grok-4-fast", "Grok 4 Fast", "openrouter", "x-ai/grok-4-fast"),
    TextModel(
        "or:meta-llama/llama-4-scout",
        "Llama 4 Scout",
        "openrouter",
        "meta-llama/llama-4-scout-17b-16e-instruct",
    ),
    TextModel(
        "or:qwen/qwen3-coder-480b",
        "Qwen3 Coder 480B",
        "openrouter",
        "qwen/qwen3-coder-480b-a35b-07-25",
    ),
    TextModel(
        "or:google/gemini-3-flash-preview",
        "Gemini 3 Flash Preview",
        "openrouter",
        "google/gemini-3-flash-preview",
    ),
    TextModel(
        "or:google/gemini-3-pro-preview",
        "Gemini 3 Pro Preview",
        "openrouter",
        "google/gemini-3-pro-preview",
    ),
    TextModel(
        "or:openai/gpt-4.1-mini",
        "GPT-4.1 Mini (OR)",
        "openrouter",
        "openai/gpt-4.1-mini-2025-04-14",
    ),
)

_BY_ID = {model.id: model for model in TEXT_MODELS}

_PREFIX_PROVIDERS: tuple[tuple[str, str], ...] = (
    ("or:", "openrouter"),
    ("groq:", "groq"),
    ("claude-", "anthropic"),
    ("sonar", "perplexity"),
    ("gemini-", "google"),
    ("kimi-", "moonshot"),
)


def provider_for_model(model_id: str) -> str:
    """Resolve the backend provider for a model id; unknown ids go to openai."""
    entry = _BY_ID.get(model_id)
    if entry is not None:
        return entry.provider
    for prefix, provider in _PREFIX_PROVIDERS:
        if model_id.startswith(prefix):
            return provider
    return "openai"


def wire_model_id(model_id: str) -> str:
    """Model id as the backend expects it on the wire."""
    entry = _BY_ID.get(model_id)
    if entry is not None and entry.router_id:
        return entry.router_id
    if model_id.startswith("or:"):
        return model_id[len("or:") :]
    if model_id.startswith("groq:"):
        return model_id[len("groq:") :]
    return model_id


def catalog() -> list[dict[str, str | None]]:
    return [
        {"id": m.id, "label": m.label, "provider": m.provider, "router_id": m.router_id}
        for m in TEXT_MODELS
    ]
