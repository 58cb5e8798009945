"""Usage accounting, token extraction and budget alerts."""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable, Sequence
from datetime import datetime

from assistant_core.config import CostPolicyConfig
from assistant_core.obs.logging import get_logger
from assistant_core.routing.pricing import calculate_cost
from assistant_core.state import RuntimeState, day_label, utc_now
from assistant_core.stores import session_tag
from assistant_core.types import Message, ProviderResult, TokenUsage, UsageEntry

logger = get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)

CHAT_ENDPOINT = "/chat"


class Timer:
    """Context timer around provider calls and whole turns."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))


def usage_endpoint(user_id: str | None, source: str | None = None) -> str:
    if source == "telegram":
        return f"{CHAT_ENDPOINT} (telegram) {session_tag(user_id)}"
    return f"{CHAT_ENDPOINT} {session_tag(user_id)}"


def resolve_token_usage(result: ProviderResult, messages: Sequence[Message]) -> TokenUsage:
    """Use the backend's reported usage, estimating locally when it reported none."""
    usage = result.usage
    if usage.input_tokens or usage.output_tokens or usage.total_tokens:
        total = usage.total_tokens or usage.input_tokens + usage.output_tokens
        return TokenUsage(usage.input_tokens, usage.output_tokens, total)

    input_tokens = sum(estimate_token_count(m.content) for m in messages)
    if result.tool_calls:
        output_text = json.dumps([call.to_dict() for call in result.tool_calls])
    else:
        output_text = result.text or ""
    output_tokens = estimate_token_count(output_text)
    return TokenUsage(input_tokens, output_tokens, input_tokens + output_tokens)


def build_usage_entry(
    *,
    model: str,
    provider: str,
    usage: TokenUsage,
    success: bool,
    endpoint: str,
    tool_used: str | None = None,
    routing_reason: str = "",
    estimated_cost: float = 0.0,
    now: datetime | None = None,
) -> UsageEntry:
    cost = calculate_cost(model, usage.input_tokens, usage.output_tokens) if success else 0.0
    return UsageEntry(
        timestamp=(now or utc_now()).isoformat(),
        model=model,
        provider=provider,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        total_tokens=usage.total_tokens,
        cost=cost,
        success=success,
        endpoint=endpoint,
        tool_used=tool_used,
        routing_reason=routing_reason,
        estimated_cost=estimated_cost,
    )


class BudgetAlerter:
    """Fires one alert per threshold per UTC day once spend crosses it."""

    def __init__(
        self,
        config: CostPolicyConfig,
        state: RuntimeState,
        notifier: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config
        self.state = state
        self.notifier = notifier

    def check(self, cost_today: float, *, now: datetime | None = None) -> list[str]:
        cap = self.config.daily_budget_usd
        if cap <= 0:
            return []

        date = day_label(now or utc_now())
        fired: list[str] = []
        for threshold in sorted(self.config.alert_thresholds):
            label = f"{round(threshold * 100)}%"
            if cost_today < cap * threshold:
                continue
            if not self.state.claim_alert(f"{date}_{label}"):
                continue
            fired.append(label)
            if threshold >= 1.0:
                message = f"Budget alert: daily cap reached. Spent ${cost_today:.4f} / ${cap}"
            else:
                message = f"Budget alert: {label} of daily cap used. Spent ${cost_today:.4f} / ${cap}"
            logger.warning("budget_alert", threshold=label, spent_usd=cost_today, cap_usd=cap)
            self._notify(message)
        return fired

    def _notify(self, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(message)
        except Exception:
            logger.warning("budget_alert_notify_failed", exc_info=True)
