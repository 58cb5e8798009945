"""Approval gate for sensitive tool calls."""

from __future__ import annotations

from collections.abc import Collection, Iterable

from assistant_core.config import ApprovalConfig
from assistant_core.types import ApprovalResult


class ApprovalGate:
    def __init__(self, config: ApprovalConfig | None = None) -> None:
        self.config = config or ApprovalConfig()

    def is_sensitive(self, tool_name: str) -> bool:
        return any(tool_name.startswith(prefix) for prefix in self.config.sensitive_prefixes)

    def evaluate(
        self, tool_names: Iterable[str], approved_tools: Collection[str] = ()
    ) -> ApprovalResult:
        blocked: list[str] = []
        for name in tool_names:
            if self.is_sensitive(name) and name not in approved_tools and name not in blocked:
                blocked.append(name)
        if not blocked:
            return ApprovalResult(approved=True)
        return ApprovalResult(
            approved=False,
            blocked_tools=blocked,
            message=f"Approval required for sensitive tools: {', '.join(blocked)}",
        )
