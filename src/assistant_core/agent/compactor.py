"""Conversation compaction: fold older turns into one summary message.

    [system, u1, a1, u2, a2, u3, a3, u4, a4, u5, a5]
 -> [system, summary(u1..a2), u3, a3, u4, a4, u5, a5]     (keep_recent=6)
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from assistant_core.agent.prompts import summary_messages
from assistant_core.agent.resilient import ResilientCaller
from assistant_core.config import CompactionConfig
from assistant_core.obs.logging import get_logger
from assistant_core.routing.models import provider_for_model
from assistant_core.types import CompactionResult, Message

logger = get_logger(__name__)

SUMMARY_PREFIX = "[Previous conversation summary: "


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


class ConversationCompactor:
    def __init__(self, caller: ResilientCaller, config: CompactionConfig | None = None) -> None:
        self.caller = caller
        self.config = config or CompactionConfig()

    def estimate_messages_tokens(self, messages: Sequence[Message]) -> int:
        overhead = self.config.per_message_overhead
        return sum(estimate_tokens(m.content) + overhead for m in messages)

    def needs_compaction(self, messages: Sequence[Message]) -> bool:
        return (
            self.estimate_messages_tokens(messages) > self.config.token_threshold
            and len(messages) > self.config.keep_recent + 1
        )

    async def compact(
        self, messages: Sequence[Message], *, user_id: str | None = None
    ) -> CompactionResult:
        """Summarize everything but the system message and the last K messages.

        Never raises. On any failure the input comes back unchanged with
        `compacted=False`.
        """
        original = list(messages)
        unchanged = CompactionResult(messages=original, compacted=False)
        if not self.needs_compaction(original):
            return unchanged

        system = original[0] if original[0].role == "system" else None
        rest = original[1:] if system else original
        keep = self.config.keep_recent
        to_keep = rest[-keep:]
        to_summarize = rest[:-keep]

        model = self.config.summary_model
        provider = provider_for_model(model)
        try:
            api_key = self.caller.credentials.resolve(provider, user_id)
            if not api_key:
                logger.info("compaction_skipped", reason="no_credential", provider=provider)
                return unchanged
            result = await self.caller.invoke_once(
                provider,
                model,
                summary_messages(to_summarize),
                api_key=api_key,
                max_tokens=self.config.summary_max_tokens,
            )
        except Exception:
            logger.warning("compaction_failed", provider=provider, model=model, exc_info=True)
            return unchanged

        summary = (result.text or "").strip()
        if not summary:
            logger.warning("compaction_skipped", reason="empty_summary")
            return unchanged

        compacted: list[Message] = [system] if system else []
        compacted.append(Message(role="assistant", content=f"{SUMMARY_PREFIX}{summary}]"))
        compacted.extend(to_keep)

        saved = self.estimate_messages_tokens(to_summarize) - estimate_tokens(summary)
        logger.info(
            "compaction_applied",
            summarized=len(to_summarize),
            kept=len(to_keep),
            saved_tokens_estimate=saved,
        )
        return CompactionResult(messages=compacted, compacted=True, saved_tokens_estimate=saved)
