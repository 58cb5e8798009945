"""Prompt templates used inside the orchestration core."""

from __future__ import annotations

from collections.abc import Sequence

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

from assistant_core.types import Message

_SUMMARY_SYSTEM_PROMPT = (
    "You are a conversation summarizer. Summarize the following conversation into a "
    "concise paragraph. Preserve key facts, decisions, names, numbers, and any action "
    "items. Be factual and concise."
)

SUMMARY_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _SUMMARY_SYSTEM_PROMPT),
        ("human", "Summarize this conversation:\n\n{transcript}"),
    ]
)

# Markers double as tool-context evidence for the tool-reliability upgrade.
TOOL_FEEDBACK_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("ai", "[Called tools: {tool_names}]"),
        ("human", "[Tool Results]\n{tool_results}"),
    ]
)

_ROLE_BY_TYPE = {"system": "system", "human": "user", "ai": "assistant"}


def to_messages(rendered: Sequence[BaseMessage]) -> list[Message]:
    return [
        Message(role=_ROLE_BY_TYPE.get(m.type, "user"), content=str(m.content))
        for m in rendered
    ]


def summary_messages(to_summarize: Sequence[Message]) -> list[Message]:
    transcript = "\n".join(f"{m.role}: {m.content}" for m in to_summarize)
    return to_messages(SUMMARY_PROMPT.format_messages(transcript=transcript))


def tool_feedback_messages(tool_names: Sequence[str], tool_results: str) -> list[Message]:
    return to_messages(
        TOOL_FEEDBACK_PROMPT.format_messages(
            tool_names=", ".join(tool_names), tool_results=tool_results
        )
    )
