"""Tool-intent detection for routing requests to reliable tool-calling models.

Three escalating checks run against the latest user message: high-confidence
verb+object phrases, broad tool-domain keywords, and short affirmatives that
follow recent tool activity. Keyword matching alone over-triggers on casual
chat; phrase matching alone misses paraphrases.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Sequence

from assistant_core.types import Message, ToolSpec

TOOL_TRIGGER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        # tasks
        r"\b(add|create|new|make|set up|setup)\b.{0,20}\b(task|todo|to-do|to do|item|ticket)\b",
        r"\b(mark|move|update|change|set|put)\b.{0,30}\b(done|complete|progress|status|pending"
        r"|archived|in.progress)\b",
        r"\b(pending|done|complete|progress|in.progress)\b.{0,30}\b(task|todo|to-do|to do|all|back)\b",
        r"\b(show|list|what are|check|my|get)\b.{0,20}\b(task|todo|to-do|to do|pending|backlog)\b",
        r"\b(finish|complete|archive|delete|remove)\b.{0,15}\b(task|todo|to-do)\b",
        r"\b(task|tasks|todo|to-do)\b.{0,20}\b(not working|broken|stuck|bug|fix|wrong)\b",
        # email
        r"\b(check|read|send|draft|write|reply)\b.{0,15}\b(email|mail|inbox|gmail)\b",
        r"\b(email|mail)\b.{0,15}\b(check|send|draft|unread)\b",
        # calendar
        r"\b(check|show|what|schedule|book|add)\b.{0,15}\b(calendar|meeting|schedule|event"
        r"|appointment)\b",
        # search
        r"\b(search|look up|find|research|browse|google)\b.{0,20}\b(web|online|internet|about|for)\b",
        # memory
        r"\b(remember|save|store|recall|what do you know)\b",
        # telephony
        r"\b(call me|phone me|ring me|remind me by call)\b",
        # analytics
        r"\b(youtube|channel|video|subscriber|upload|content).{0,15}\b(stats|analytics|performance"
        r"|views|trending)\b",
        r"\b(analyze|check|how.s).{0,15}\b(youtube|channel|video)\b",
    )
)

TOOL_KEYWORDS = re.compile(
    r"\b(task|tasks|todo|to-?do|email|mail|inbox|gmail|calendar|meeting|schedule|event|search"
    r"|remember|recall|memory|call me|phone|youtube|channel|pending|in.progress|completed|done"
    r"|archived|progress|priority|deadline)\b",
    re.IGNORECASE,
)

AFFIRMATIVE = re.compile(
    r"^(yes|yeah|yep|yea|ok|okay|sure|go ahead|do it|please|confirm|alright|right|correct"
    r"|exactly|that one|this one|go|proceed|y)\b",
    re.IGNORECASE,
)

TOOL_CONTEXT_MARKERS = ("[Tool Results]", "[Called tools:")
TOOL_CONTEXT_KEYWORDS = re.compile(
    r"\b(task|email|calendar|manage_task|check_email)\b", re.IGNORECASE
)

# Natural-language or markup leakage of a tool call the model could not make.
TOOL_INTENT_PATTERN = re.compile(
    r"let me (update|check|create|send|search|save|call|move|mark|list|get|find|schedule|draft)"
    r"|<function_calls>|<tool_call>|<invoke"
    r"|I'll (update|check|create|send|search|save|call|move|mark|find)",
    re.IGNORECASE,
)

_LEAKED_BLOCKS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<function_calls>[\s\S]*?</function_calls>", re.IGNORECASE),
    re.compile(r"<tool_call>[\s\S]*?</tool_call>", re.IGNORECASE),
    re.compile(r"<invoke[\s\S]*?</invoke>", re.IGNORECASE),
    re.compile(r"<function_calls>[\s\S]*", re.IGNORECASE),
    re.compile(r"<tool_call>[\s\S]*", re.IGNORECASE),
)


def last_user_text(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content or ""
    return ""


def has_tool_context(messages: Sequence[Message], window: int = 8) -> bool:
    for message in messages[-window:]:
        content = message.content or ""
        if any(marker in content for marker in TOOL_CONTEXT_MARKERS):
            return True
        if TOOL_CONTEXT_KEYWORDS.search(content):
            return True
    return False


def needs_tool_upgrade(
    messages: Sequence[Message],
    tools: Sequence[ToolSpec] | None,
    current_provider: str,
    reliable_providers: Collection[str],
    *,
    history_window: int = 8,
) -> bool:
    if not tools:
        return False
    if current_provider in reliable_providers:
        return False

    text = last_user_text(messages)
    if not text:
        return False

    if any(pattern.search(text) for pattern in TOOL_TRIGGER_PATTERNS):
        return True
    if TOOL_KEYWORDS.search(text):
        return True
    if AFFIRMATIVE.search(text.strip()):
        return has_tool_context(messages, history_window)
    return False


def shows_tool_intent(text: str) -> bool:
    return bool(text) and TOOL_INTENT_PATTERN.search(text) is not None


def strip_leaked_markup(text: str) -> str:
    """Remove raw tool-call markup some backends emit as plain text."""
    if not text:
        return text
    cleaned = text
    for pattern in _LEAKED_BLOCKS:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()
