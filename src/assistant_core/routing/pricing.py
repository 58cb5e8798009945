"""Static per-model token pricing (USD per 1M tokens)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ModelPricing:
    input_per_1m: float
    output_per_1m: float


# Keyed by model-id substring; lookups try the longest key first.
MODEL_PRICING: dict[str, ModelPricing] = {
    "gpt-5.2": ModelPricing(5.00, 20.00),
    "gpt-4.1-nano": ModelPricing(0.10, 0.40),
    "gpt-4.1-mini": ModelPricing(0.40, 1.60),
    "gpt-4.1": ModelPricing(2.00, 8.00),
    "gpt-4o-mini": ModelPricing(0.15, 0.60),
    "gpt-4o": ModelPricing(2.50, 10.00),
    "o3-mini": ModelPricing(1.10, 4.40),
    "claude-opus-4": ModelPricing(15.00, 75.00),
    "claude-sonnet-4": ModelPricing(3.00, 15.00),
    "claude-haiku-4": ModelPricing(0.80, 4.00),
    "gemini-3-pro": ModelPricing(1.50, 10.00),
    "gemini-3-flash": ModelPricing(0.15, 0.60),
    "gemini-2.5-pro": ModelPricing(1.25, 10.00),
    "gemini-2.5-flash": ModelPricing(0.15, 0.60),
    "sonar-reasoning-pro": ModelPricing(2.00, 8.00),
    "sonar-pro": ModelPricing(3.00, 15.00),
    "sonar": ModelPricing(1.00, 1.00),
    "llama-3.3-70b": ModelPricing(0.59, 0.79),
    "mixtral-8x7b": ModelPricing(0.24, 0.24),
    "deepseek-v3": ModelPricing(0.27, 1.10),
    "deepseek-r1": ModelPricing(0.55, 2.19),
    "kimi-k2": ModelPricing(0.60, 2.40),
    "grok-4": ModelPricing(3.00, 15.00),
    "llama-4": ModelPricing(0.15, 0.60),
    "qwen3-coder": ModelPricing(0.50, 2.00),
}

DEFAULT_PRICING = ModelPricing(1.00, 4.00)

_SORTED_KEYS = sorted(MODEL_PRICING, key=len, reverse=True)


def get_pricing(model_id: str) -> ModelPricing:
    for key in _SORTED_KEYS:
        if key in model_id:
            return MODEL_PRICING[key]
    return DEFAULT_PRICING


def calculate_cost(model_id: str, input_tokens: int, output_tokens: int) -> float:
    pricing = get_pricing(model_id)
    cost = (input_tokens / 1_000_000) * pricing.input_per_1m + (
        output_tokens / 1_000_000
    ) * pricing.output_per_1m
    return round(cost, 6)
