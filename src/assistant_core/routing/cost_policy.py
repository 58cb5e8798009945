"""Cost policy: tier-based cheapest-model selection with budget downgrades."""

from __future__ import annotations

from dataclasses import dataclass

from assistant_core.config import CostPolicyConfig
from assistant_core.routing.classifier import classify_complexity
from assistant_core.routing.pricing import calculate_cost
from assistant_core.types import CostDecision

REASON_EXPLICIT = "explicit choice respected"
REASON_TIER = "complexity-tier routing"
REASON_BUDGET = "budget downgrade"
REASON_DISABLED = "cost policy disabled"


@dataclass(slots=True)
class CostPolicyContext:
    requested_model: str
    user_message: str
    has_tools: bool
    cost_today_usd: float = 0.0
    session_cost_usd: float = 0.0
    explicit_model: bool = False
    is_critical: bool = False


class CostPolicySelector:
    """Combines tier, tool-need and live spend into a final model choice."""

    def __init__(self, config: CostPolicyConfig | None = None) -> None:
        self.config = config or CostPolicyConfig()

    def estimate(self, model: str) -> float:
        return calculate_cost(
            model,
            self.config.estimated_input_tokens,
            self.config.estimated_output_tokens,
        )

    def tier_for(self, ctx: CostPolicyContext) -> str:
        if ctx.is_critical:
            return "critical"
        if ctx.has_tools:
            return "tool_call"
        return classify_complexity(ctx.user_message).value

    def select(self, ctx: CostPolicyContext) -> CostDecision:
        tier = self.tier_for(ctx)

        if ctx.explicit_model:
            return self._keep(ctx, tier, REASON_EXPLICIT)
        if not self.config.enabled:
            return self._keep(ctx, tier, REASON_DISABLED)

        budget_reason = self._budget_exceeded(ctx)
        if budget_reason is not None:
            pool = self.config.tiers.get("simple") or [ctx.requested_model]
            model, cost = self._cheapest(pool)
            return CostDecision(
                original_model=ctx.requested_model,
                selected_model=model,
                tier=tier,
                reason=f"{REASON_BUDGET}: {budget_reason}",
                estimated_cost_usd=cost,
                downgraded_for_budget=True,
            )

        candidates = self.config.tiers.get(tier) or [ctx.requested_model]
        model, cost = self._cheapest(candidates)
        return CostDecision(
            original_model=ctx.requested_model,
            selected_model=model,
            tier=tier,
            reason=f"{REASON_TIER}: {tier}",
            estimated_cost_usd=cost,
        )

    def _keep(self, ctx: CostPolicyContext, tier: str, reason: str) -> CostDecision:
        return CostDecision(
            original_model=ctx.requested_model,
            selected_model=ctx.requested_model,
            tier=tier,
            reason=reason,
            estimated_cost_usd=self.estimate(ctx.requested_model),
        )

    def _cheapest(self, models: list[str]) -> tuple[str, float]:
        winner = models[0]
        winner_cost = self.estimate(winner)
        for model in models[1:]:
            cost = self.estimate(model)
            if cost < winner_cost:
                winner, winner_cost = model, cost
        return winner, winner_cost

    def _budget_exceeded(self, ctx: CostPolicyContext) -> str | None:
        daily_cap = self.config.daily_budget_usd
        session_cap = self.config.session_budget_usd
        if daily_cap > 0 and ctx.cost_today_usd >= daily_cap:
            return "daily budget reached"
        if session_cap > 0 and ctx.session_cost_usd >= session_cap:
            return "session budget reached"
        return None
