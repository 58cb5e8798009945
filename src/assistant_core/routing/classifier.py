"""Complexity classification and tier routing.

Both functions are pure: they read no mutable state and perform no I/O, so the
rule tables below are the whole behaviour.
"""

from __future__ import annotations

import re

from assistant_core.config import RoutingConfig
from assistant_core.types import Complexity, RoutingDecision

SIMPLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"^(hi|hello|hey|thanks|thank you|yes|no|ok|okay|sure|good|great|bye|cool|nice"
        r"|yep|nope|got it|alright)\b",
        re.IGNORECASE,
    ),
    re.compile(r"^(what time|what day|what date)", re.IGNORECASE),
    re.compile(r"^(gm|gn|good morning|good night|good evening)\b", re.IGNORECASE),
)

COMPLEX_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"```"),
    re.compile(r"\b(function|class|import|export|const|let|var|def|async|await)\s"),
    re.compile(
        r"\b(analyze|compare|evaluate|research|strategy|proposal|implement|architect|design"
        r"|refactor|debug|optimize)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(write me|build|create|develop|code)\s.{20,}", re.IGNORECASE),
    re.compile(
        r"\b(explain|how does|why does|what happens when)\b.{50,}", re.IGNORECASE
    ),
    re.compile(r"\b(step.by.step|multi.?step|detailed|comprehensive|thorough)\b", re.IGNORECASE),
    re.compile(r"\b(pros? and cons?|trade.?offs?|advantages|disadvantages)\b", re.IGNORECASE),
)

SHORT_MESSAGE_CHARS = 15
GREETING_MAX_CHARS = 30
LONG_MESSAGE_CHARS = 500


def classify_complexity(message: str) -> Complexity:
    """Score an utterance into a coarse tier; the first matching rule wins."""
    trimmed = message.strip()

    if len(trimmed) < SHORT_MESSAGE_CHARS:
        return Complexity.SIMPLE
    if len(trimmed) < GREETING_MAX_CHARS and any(p.search(trimmed) for p in SIMPLE_PATTERNS):
        return Complexity.SIMPLE
    if any(p.search(trimmed) for p in COMPLEX_PATTERNS):
        return Complexity.COMPLEX
    if len(trimmed) > LONG_MESSAGE_CHARS:
        return Complexity.COMPLEX
    return Complexity.MODERATE


def route_model(requested_model: str, message: str, config: RoutingConfig) -> RoutingDecision:
    """Pick the tier model, unless the caller pinned a non-default model."""
    complexity = classify_complexity(message)
    if requested_model != config.default_model:
        return RoutingDecision(model=requested_model, complexity=complexity, routed=False)

    tier_model = getattr(config.tier_models, complexity.value)
    return RoutingDecision(model=tier_model, complexity=complexity, routed=True)
