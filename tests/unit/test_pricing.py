from assistant_core.routing.models import provider_for_model, wire_model_id
from assistant_core.routing.pricing import DEFAULT_PRICING, calculate_cost, get_pricing


def test_longest_substring_wins() -> None:
    assert get_pricing("gpt-4.1-mini").input_per_1m == 0.40
    assert get_pricing("gpt-4.1-nano-2025").input_per_1m == 0.10
    assert get_pricing("gpt-4.1").input_per_1m == 2.00


def test_unknown_model_uses_default_row() -> None:
    assert get_pricing("totally-new-model") == DEFAULT_PRICING
    assert calculate_cost("totally-new-model", 1_000_000, 1_000_000) == 5.0


def test_cost_rounded_to_six_decimals() -> None:
    cost = calculate_cost("gpt-4.1-mini", 123, 457)
    assert cost == round(123 / 1e6 * 0.40 + 457 / 1e6 * 1.60, 6)


def test_provider_inferred_from_prefix() -> None:
    assert provider_for_model("or:meta/llama") == "openrouter"
    assert provider_for_model("groq:llama-3.3-70b") == "groq"
    assert provider_for_model("claude-opus-4-6") == "anthropic"
    assert provider_for_model("sonar-pro") == "perplexity"
    assert provider_for_model("gemini-2.5-flash") == "google"
    assert provider_for_model("kimi-k2.5") == "moonshot"
    assert provider_for_model("gpt-4.1") == "openai"


def test_wire_model_id_strips_routing_prefixes() -> None:
    assert wire_model_id("groq:llama-3.3-70b") == "llama-3.3-70b"
    assert wire_model_id("or:some/unlisted-model") == "some/unlisted-model"
    assert wire_model_id("gpt-4.1") == "gpt-4.1"
