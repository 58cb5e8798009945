from datetime import datetime, timedelta, timezone

from assistant_core.config import CostPolicyConfig
from assistant_core.obs.usage import BudgetAlerter, resolve_token_usage, usage_endpoint
from assistant_core.state import RuntimeState
from assistant_core.types import Message, ProviderResult, TokenUsage, ToolCall

NOON = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


def test_spend_tally_is_scoped_per_day_and_session() -> None:
    state = RuntimeState()

    state.record_spend(0.25, "session:a", now=NOON)
    state.record_spend(0.5, "session:b", now=NOON)
    state.record_spend(1.0, "session:a", now=NOON + timedelta(days=1))

    assert state.cost_today(now=NOON) == 0.75
    assert state.cost_today(now=NOON + timedelta(days=1)) == 1.0
    assert state.session_cost("session:a") == 1.25
    assert state.session_cost("session:unknown") == 0.0


def test_fresh_state_starts_empty() -> None:
    state = RuntimeState()

    assert state.turns == 0
    assert state.next_turn() == 1
    assert state.cost_today() == 0.0
    assert state.alerts_sent == set()


def test_budget_alerts_fire_once_per_threshold_per_day() -> None:
    state = RuntimeState()
    sent: list[str] = []
    alerter = BudgetAlerter(CostPolicyConfig(daily_budget_usd=2.0), state, sent.append)

    assert alerter.check(0.9, now=NOON) == []
    assert alerter.check(1.1, now=NOON) == ["50%"]
    assert alerter.check(1.6, now=NOON) == ["75%"]
    assert alerter.check(1.7, now=NOON) == []
    assert alerter.check(2.5, now=NOON) == ["100%"]
    assert alerter.check(2.5, now=NOON + timedelta(days=1)) == ["50%", "75%", "100%"]

    assert len(sent) == 6
    assert "daily cap reached" in sent[2]


def test_notifier_failure_does_not_break_alerting() -> None:
    def _broken(message: str) -> None:
        raise RuntimeError("push service down")

    alerter = BudgetAlerter(CostPolicyConfig(daily_budget_usd=1.0), RuntimeState(), _broken)

    assert alerter.check(5.0, now=NOON) == ["50%", "75%", "100%"]


def test_usage_endpoint_tags_session_and_source() -> None:
    assert usage_endpoint("u1") == "/chat session:u1"
    assert usage_endpoint(None) == "/chat session:anonymous"
    assert usage_endpoint("u1", "telegram") == "/chat (telegram) session:u1"


def test_reported_usage_is_preferred() -> None:
    result = ProviderResult(text="hi", usage=TokenUsage(10, 5, 0))

    assert resolve_token_usage(result, []) == TokenUsage(10, 5, 15)


def test_missing_usage_is_estimated_locally() -> None:
    result = ProviderResult(tool_calls=[ToolCall("list_tasks", {})])

    usage = resolve_token_usage(result, [Message("user", "show my tasks")])

    assert usage.input_tokens == 3
    assert usage.output_tokens > 0
    assert usage.total_tokens == usage.input_tokens + usage.output_tokens
