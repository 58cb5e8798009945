"""Re-issue a call when an unreliable provider narrates a tool call instead of making it."""

from __future__ import annotations

from collections.abc import Sequence

from assistant_core.agent.resilient import ResilientCaller
from assistant_core.config import ToolRoutingConfig
from assistant_core.obs.logging import get_logger
from assistant_core.routing.tool_intent import shows_tool_intent
from assistant_core.types import CallOutcome, Message, ToolSpec

logger = get_logger(__name__)


class ResponseIntentRetry:
    def __init__(self, caller: ResilientCaller, config: ToolRoutingConfig | None = None) -> None:
        self.caller = caller
        self.config = config or ToolRoutingConfig()

    def applies(self, outcome: CallOutcome, tools: Sequence[ToolSpec] | None) -> bool:
        if not tools:
            return False
        if outcome.provider in self.config.reliable_providers:
            return False
        if outcome.result.has_tool_calls:
            return False
        return shows_tool_intent(outcome.result.text or "")

    async def repair(
        self,
        outcome: CallOutcome,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec] | None,
        *,
        user_id: str | None = None,
        primary: str | None = None,
    ) -> tuple[CallOutcome, bool]:
        """Return the repaired outcome and whether the retry replaced it.

        `primary` is the provider the turn was first sent to; the repaired
        outcome only counts as a fallback when it lands on a different one.
        Never raises: on any failure the original outcome is returned.
        """
        if not self.applies(outcome, tools):
            return outcome, False

        provider = self.config.capable_provider
        model = self.config.capable_model
        logger.info(
            "intent_retry_triggered",
            from_provider=outcome.provider,
            to_provider=provider,
            model=model,
        )
        try:
            api_key = self.caller.credentials.resolve(provider, user_id)
            if not api_key:
                logger.warning("intent_retry_skipped", provider=provider, reason="no_credential")
                return outcome, False
            result = await self.caller.invoke_once(
                provider, model, messages, api_key=api_key, tools=tools
            )
        except Exception:
            logger.warning("intent_retry_failed", provider=provider, model=model, exc_info=True)
            return outcome, False

        return (
            CallOutcome(
                result=result,
                provider=provider,
                model=model,
                used_fallback=(
                    provider != primary if primary is not None else outcome.used_fallback
                ),
            ),
            True,
        )
