"""Process-lifetime runtime state.

`RuntimeState` is created once at process start and injected wherever spend
counters or budget-alert flags are needed. Nothing here survives a restart:
the tally restarts at zero and budget alerts may fire again for the same day.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_label(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).date().isoformat()


@dataclass(slots=True)
class RuntimeState:
    started_at: datetime = field(default_factory=utc_now)
    turns: int = 0
    daily_spend: dict[str, float] = field(default_factory=lambda: defaultdict(float))
    session_spend: dict[str, float] = field(default_factory=lambda: defaultdict(float))
    alerts_sent: set[str] = field(default_factory=set)

    def next_turn(self) -> int:
        self.turns += 1
        return self.turns

    def record_spend(self, cost: float, session_id: str, *, now: datetime | None = None) -> None:
        if cost <= 0:
            return
        self.daily_spend[day_label(now or utc_now())] += cost
        self.session_spend[session_id] += cost

    def cost_today(self, *, now: datetime | None = None) -> float:
        return self.daily_spend.get(day_label(now or utc_now()), 0.0)

    def session_cost(self, session_id: str) -> float:
        return self.session_spend.get(session_id, 0.0)

    def claim_alert(self, key: str) -> bool:
        """Return True the first time `key` is claimed, False afterwards."""
        if key in self.alerts_sent:
            return False
        self.alerts_sent.add(key)
        return True

    def uptime_seconds(self, *, now: datetime | None = None) -> float:
        return ((now or utc_now()) - self.started_at).total_seconds()
