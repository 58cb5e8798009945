"""Per-turn chat pipeline.

routing -> cost policy -> tool upgrade -> memory/task context -> compaction
-> resilient call -> intent retry -> approval gate -> usage accounting.

Routing, cost policy and the resilient call are the primary path and may fail
the turn. Everything else is best-effort: an exception there is logged and the
turn carries on.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from assistant_core.agent.approval import ApprovalGate
from assistant_core.agent.compactor import ConversationCompactor
from assistant_core.agent.intent_retry import ResponseIntentRetry
from assistant_core.agent.resilient import ResilientCaller
from assistant_core.config import Settings
from assistant_core.obs.logging import get_logger, request_id_ctx
from assistant_core.obs.usage import (
    BudgetAlerter,
    Timer,
    build_usage_entry,
    resolve_token_usage,
    usage_endpoint,
)
from assistant_core.providers.errors import RequestDeadlineExceeded
from assistant_core.routing.classifier import route_model
from assistant_core.routing.cost_policy import CostPolicyContext, CostPolicySelector
from assistant_core.routing.models import provider_for_model
from assistant_core.routing.tool_intent import (
    last_user_text,
    needs_tool_upgrade,
    strip_leaked_markup,
)
from assistant_core.state import RuntimeState
from assistant_core.stores import (
    InMemoryMemoryStore,
    InMemoryTaskStore,
    InMemoryUsageStore,
    MemoryStore,
    TaskStore,
    UsageStore,
    session_tag,
)
from assistant_core.types import (
    ApprovalResult,
    Message,
    TokenUsage,
    ToolCall,
    ToolSpec,
    UsageEntry,
)

logger = get_logger(__name__)


@dataclass(slots=True)
class ChatTurn:
    """One inbound chat request."""

    messages: list[Message]
    tools: list[ToolSpec] | None = None
    model: str | None = None
    source: str | None = None
    user_id: str | None = None
    approved_tools: list[str] = field(default_factory=list)
    critical: bool = False


@dataclass(slots=True)
class TurnMeta:
    routed: bool
    complexity: str
    fallback: bool
    compacted: bool
    original_model: str
    actual_model: str
    provider: str
    routing_reason: str
    estimated_cost: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "routed": self.routed,
            "complexity": self.complexity,
            "fallback": self.fallback,
            "compacted": self.compacted,
            "originalModel": self.original_model,
            "actualModel": self.actual_model,
            "provider": self.provider,
            "routingReason": self.routing_reason,
            "estimatedCost": self.estimated_cost,
        }


@dataclass(slots=True)
class ChatReply:
    response: str | None
    tool_calls: list[ToolCall] | None
    meta: TurnMeta
    approval_required: bool = False
    blocked_tools: list[str] = field(default_factory=list)
    approval_message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.response is not None:
            payload["response"] = self.response
        if self.tool_calls is not None:
            payload["toolCalls"] = [call.to_dict() for call in self.tool_calls]
        payload["approvalRequired"] = self.approval_required
        if self.blocked_tools:
            payload["blockedTools"] = list(self.blocked_tools)
        if self.approval_message:
            payload["approvalMessage"] = self.approval_message
        payload["_meta"] = self.meta.to_dict()
        return payload


@dataclass(slots=True)
class _Progress:
    """What the turn had resolved before it failed, for the failed-usage record."""

    model: str = "unknown"
    provider: str = "unknown"
    routing_reason: str = ""
    estimated_cost: float = 0.0


class ChatOrchestrator:
    def __init__(
        self,
        settings: Settings,
        caller: ResilientCaller,
        *,
        usage_store: UsageStore | None = None,
        memory_store: MemoryStore | None = None,
        task_store: TaskStore | None = None,
        state: RuntimeState | None = None,
        notifier: Callable[[str], None] | None = None,
    ) -> None:
        self.settings = settings
        self.caller = caller
        self.usage_store = usage_store or InMemoryUsageStore()
        self.memory_store = memory_store or InMemoryMemoryStore()
        self.task_store = task_store or InMemoryTaskStore()
        self.state = state or RuntimeState()
        self.cost_policy = CostPolicySelector(settings.cost_policy)
        self.compactor = ConversationCompactor(caller, settings.compaction)
        self.intent_retry = ResponseIntentRetry(caller, settings.tool_routing)
        self.approval = ApprovalGate(settings.approval)
        self.alerter = BudgetAlerter(settings.cost_policy, self.state, notifier)

    async def handle(self, turn: ChatTurn) -> ChatReply:
        """Run one chat turn under the overall request deadline.

        Raises:
            RequestDeadlineExceeded: the turn ran past the configured deadline.
            ProviderError / AllProvidersFailedError: the primary call failed.
        """
        token = request_id_ctx.set(uuid.uuid4().hex[:16])
        self.state.next_turn()
        progress = _Progress()
        deadline = self.settings.resilience.request_deadline_seconds
        try:
            return await asyncio.wait_for(self._run(turn, progress), deadline)
        except TimeoutError as exc:
            self._log_failed_usage(turn, progress)
            raise RequestDeadlineExceeded(deadline) from exc
        except Exception:
            self._log_failed_usage(turn, progress)
            raise
        finally:
            request_id_ctx.reset(token)

    async def _run(self, turn: ChatTurn, progress: _Progress) -> ChatReply:
        messages = [Message(role=m.role, content=m.content) for m in turn.messages]
        user_text = last_user_text(messages)
        default_model = self.settings.routing.default_model
        requested = turn.model or default_model
        explicit = requested != default_model

        routing = route_model(requested, user_text, self.settings.routing)
        decision = self.cost_policy.select(
            CostPolicyContext(
                requested_model=routing.model,
                user_message=user_text,
                has_tools=bool(turn.tools),
                cost_today_usd=self._cost_today(),
                session_cost_usd=self._session_cost(turn.user_id),
                explicit_model=explicit,
                is_critical=turn.critical,
            )
        )
        model = decision.selected_model
        provider = provider_for_model(model)
        progress.model, progress.provider = model, provider
        progress.routing_reason = decision.reason
        progress.estimated_cost = decision.estimated_cost_usd
        logger.info(
            "model_routed",
            requested=requested,
            model=model,
            provider=provider,
            complexity=routing.complexity.value,
            routed=routing.routed,
            reason=decision.reason,
            estimated_cost_usd=decision.estimated_cost_usd,
        )

        model, provider = self._maybe_upgrade_for_tools(messages, turn, model, provider)
        progress.model, progress.provider = model, provider

        messages = self._inject_context(messages, user_text)
        compacted = False
        try:
            if self.compactor.needs_compaction(messages):
                compaction = await self.compactor.compact(messages, user_id=turn.user_id)
                messages, compacted = compaction.messages, compaction.compacted
        except Exception:
            logger.warning("compaction_failed", exc_info=True)

        with Timer() as timer:
            outcome = await self.caller.call(
                provider, model, messages, tools=turn.tools, user_id=turn.user_id
            )
        logger.info(
            "provider_call_completed",
            provider=outcome.provider,
            model=outcome.model,
            fallback=outcome.used_fallback,
            latency_ms=round(timer.elapsed_ms, 1),
        )
        outcome, _ = await self.intent_retry.repair(
            outcome, messages, turn.tools, user_id=turn.user_id, primary=provider
        )
        result = outcome.result
        progress.model, progress.provider = outcome.model, outcome.provider

        approval = ApprovalResult(approved=True)
        if result.tool_calls:
            approval = self.approval.evaluate(
                [call.name for call in result.tool_calls], turn.approved_tools
            )

        tool_used = ", ".join(c.name for c in result.tool_calls) if result.tool_calls else None
        entry = build_usage_entry(
            model=outcome.model,
            provider=outcome.provider,
            usage=resolve_token_usage(result, messages),
            success=True,
            endpoint=usage_endpoint(turn.user_id, turn.source),
            tool_used=tool_used,
            routing_reason=decision.reason,
            estimated_cost=decision.estimated_cost_usd,
        )
        self._record_usage(entry, turn.user_id)

        meta = TurnMeta(
            routed=routing.routed,
            complexity=routing.complexity.value,
            fallback=outcome.used_fallback,
            compacted=compacted,
            original_model=requested,
            actual_model=outcome.model,
            provider=outcome.provider,
            routing_reason=decision.reason,
            estimated_cost=decision.estimated_cost_usd,
        )

        if not approval.approved:
            logger.info("approval_required", blocked_tools=approval.blocked_tools)
            return ChatReply(
                response=approval.message,
                tool_calls=[],
                meta=meta,
                approval_required=True,
                blocked_tools=approval.blocked_tools,
                approval_message=approval.message,
            )
        if result.tool_calls:
            return ChatReply(response=None, tool_calls=result.tool_calls, meta=meta)
        return ChatReply(response=strip_leaked_markup(result.text or ""), tool_calls=None, meta=meta)

    def _maybe_upgrade_for_tools(
        self, messages: list[Message], turn: ChatTurn, model: str, provider: str
    ) -> tuple[str, str]:
        cfg = self.settings.tool_routing
        if not needs_tool_upgrade(
            messages,
            turn.tools,
            provider,
            cfg.reliable_providers,
            history_window=cfg.history_window,
        ):
            return model, provider
        if not self.caller.credentials.has(cfg.capable_provider, turn.user_id):
            logger.info("tool_upgrade_skipped", reason="no_credential", provider=cfg.capable_provider)
            return model, provider
        logger.info("tool_upgrade", from_model=model, to_model=cfg.capable_model)
        return cfg.capable_model, cfg.capable_provider

    def _inject_context(self, messages: list[Message], user_text: str) -> list[Message]:
        extra: list[str] = []
        try:
            memory = self.memory_store.get_memory_context(user_text or None)
            if memory:
                extra.append(memory)
        except Exception:
            logger.warning("memory_injection_failed", exc_info=True)
        try:
            pending = self.task_store.pending_count()
            if pending:
                extra.append(f"\n[Situational context: {pending} pending task(s)]")
        except Exception:
            logger.warning("task_context_failed", exc_info=True)

        if not extra:
            return messages
        addition = "".join(extra)
        if messages and messages[0].role == "system":
            head = Message(role="system", content=messages[0].content + addition)
            return [head, *messages[1:]]
        return [Message(role="system", content=addition.lstrip("\n")), *messages]

    def _cost_today(self) -> float:
        try:
            return self.usage_store.get_cost_today()
        except Exception:
            logger.warning("usage_lookup_failed", lookup="cost_today", exc_info=True)
            return self.state.cost_today()

    def _session_cost(self, user_id: str | None) -> float:
        session = user_id or "anonymous"
        try:
            return self.usage_store.get_session_cost(session)
        except Exception:
            logger.warning("usage_lookup_failed", lookup="session_cost", exc_info=True)
            return self.state.session_cost(session_tag(session))

    def _record_usage(self, entry: UsageEntry, user_id: str | None) -> None:
        try:
            self.usage_store.log_usage(entry)
        except Exception:
            logger.warning("usage_logging_failed", exc_info=True)
        self.state.record_spend(entry.cost, session_tag(user_id))
        try:
            self.alerter.check(self._cost_today())
        except Exception:
            logger.warning("budget_alert_failed", exc_info=True)

    def _log_failed_usage(self, turn: ChatTurn, progress: _Progress) -> None:
        entry = build_usage_entry(
            model=progress.model,
            provider=progress.provider,
            usage=TokenUsage(),
            success=False,
            endpoint=usage_endpoint(turn.user_id, turn.source),
            routing_reason=progress.routing_reason,
            estimated_cost=progress.estimated_cost,
        )
        try:
            self.usage_store.log_usage(entry)
        except Exception:
            logger.warning("usage_logging_failed", exc_info=True)
