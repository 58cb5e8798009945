"""Collaborator interfaces consumed by the orchestration core.

Persistent usage, memory, task and per-user key stores live outside this
package. The core only talks to them through the protocols below; the
in-memory implementations back the default app wiring and the tests.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal, Protocol

from assistant_core.state import day_label, utc_now
from assistant_core.types import UsageEntry

Importance = Literal["low", "medium", "high"]

_WORD_SPLIT = re.compile(r"\s+")


class UsageStore(Protocol):
    def log_usage(self, entry: UsageEntry) -> None: ...

    def get_cost_today(self) -> float: ...

    def get_session_cost(self, user_id: str) -> float: ...

    def list_recent(self, limit: int = 20) -> list[UsageEntry]: ...

    def summary(self) -> dict[str, Any]: ...


class MemoryStore(Protocol):
    def get_memory_context(self, query: str | None = None) -> str: ...

    def save(
        self,
        topic: str,
        content: str,
        *,
        kind: str = "fact",
        importance: Importance = "medium",
        tags: list[str] | None = None,
    ) -> MemoryEntry: ...

    def recall(self, query: str, limit: int = 5) -> list[MemoryEntry]: ...


class TaskStore(Protocol):
    def get_all_tasks(self) -> list[Task]: ...

    def pending_count(self) -> int: ...


class UserKeyStore(Protocol):
    def get(self, user_id: str, key_id: str) -> str | None: ...


def session_tag(user_id: str | None) -> str:
    return f"session:{user_id or 'anonymous'}"


class InMemoryUsageStore:
    """Usage log kept in process memory."""

    def __init__(self) -> None:
        self._entries: list[UsageEntry] = []

    def log_usage(self, entry: UsageEntry) -> None:
        self._entries.append(entry)

    def get_cost_today(self) -> float:
        today = day_label(utc_now())
        return round(
            sum(e.cost for e in self._entries if e.timestamp[:10] == today),
            6,
        )

    def get_session_cost(self, user_id: str) -> float:
        suffix = f" {session_tag(user_id)}"
        return round(sum(e.cost for e in self._entries if e.endpoint.endswith(suffix)), 6)

    def list_recent(self, limit: int = 20) -> list[UsageEntry]:
        return self._entries[-limit:]

    def summary(self) -> dict[str, Any]:
        """Aggregate usage metrics for the /usage endpoint."""
        entries = self._entries
        total = len(entries)
        if total == 0:
            return {
                "total_requests": 0,
                "failed_requests": 0,
                "total_input_tokens": 0,
                "total_output_tokens": 0,
                "total_cost_usd": 0.0,
                "cost_today_usd": 0.0,
                "by_model": {},
            }

        by_model: dict[str, dict[str, float | int]] = {}
        for entry in entries:
            bucket = by_model.setdefault(entry.model, {"requests": 0, "cost_usd": 0.0})
            bucket["requests"] += 1
            bucket["cost_usd"] = round(bucket["cost_usd"] + entry.cost, 6)

        return {
            "total_requests": total,
            "failed_requests": sum(1 for e in entries if not e.success),
            "total_input_tokens": sum(e.input_tokens for e in entries),
            "total_output_tokens": sum(e.output_tokens for e in entries),
            "total_cost_usd": round(sum(e.cost for e in entries), 6),
            "cost_today_usd": self.get_cost_today(),
            "by_model": by_model,
        }


@dataclass(slots=True)
class MemoryEntry:
    topic: str
    content: str
    kind: str = "fact"
    importance: Importance = "medium"
    tags: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: datetime = field(default_factory=utc_now)

    def render(self) -> str:
        return f"- [{self.kind}] {self.topic}: {self.content}"


class InMemoryMemoryStore:
    """Keyword-ranked memory used for selective system-prompt injection."""

    header = "--- MEMORY (relevant to this conversation) ---"
    fallback_header = "--- MEMORY ---"
    footer = "--- END MEMORY ---"

    def __init__(self, *, top_k: int = 5, fallback_k: int = 3) -> None:
        self._entries: list[MemoryEntry] = []
        self.top_k = top_k
        self.fallback_k = fallback_k

    def save(
        self,
        topic: str,
        content: str,
        *,
        kind: str = "fact",
        importance: Importance = "medium",
        tags: list[str] | None = None,
    ) -> MemoryEntry:
        entry = MemoryEntry(
            topic=topic, content=content, kind=kind, importance=importance, tags=list(tags or [])
        )
        self._entries.append(entry)
        return entry

    def all(self) -> list[MemoryEntry]:
        return list(self._entries)

    def recall(self, query: str, limit: int = 5) -> list[MemoryEntry]:
        return [entry for entry, _ in self._rank(query)[:limit]]

    def get_memory_context(self, query: str | None = None) -> str:
        if not self._entries:
            return ""

        relevant = self.recall(query, self.top_k) if query else []
        if relevant:
            lines = [self.header, *(entry.render() for entry in relevant), self.footer]
            return "\n" + "\n".join(lines)

        important = [e for e in self._entries if e.importance == "high"][: self.fallback_k]
        if not important:
            return ""
        lines = [self.fallback_header, *(entry.render() for entry in important), self.footer]
        return "\n" + "\n".join(lines)

    def _rank(self, query: str) -> list[tuple[MemoryEntry, int]]:
        words = [w for w in _WORD_SPLIT.split(query.lower()) if len(w) > 1]
        if not words:
            return []

        now = utc_now()
        head = query.lower()[:20]
        scored: list[tuple[MemoryEntry, int]] = []
        for entry in self._entries:
            text = f"{entry.topic} {entry.content} {' '.join(entry.tags)}".lower()
            hits = sum(2 for w in words if w in text)
            if head in entry.topic.lower():
                hits += 3
            if hits == 0:
                continue

            score = hits
            if entry.importance == "high":
                score += 2
            elif entry.importance == "medium":
                score += 1
            age = now - entry.timestamp
            if age < timedelta(days=1):
                score += 2
            elif age < timedelta(days=7):
                score += 1
            scored.append((entry, score))

        # sorted() is stable: equal scores keep insertion order.
        return sorted(scored, key=lambda pair: pair[1], reverse=True)


@dataclass(slots=True)
class Task:
    title: str
    status: str = "pending"
    priority: str = "medium"
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


class InMemoryTaskStore:
    def __init__(self, tasks: list[Task] | None = None) -> None:
        self._tasks: list[Task] = list(tasks or [])

    def add(self, title: str, *, status: str = "pending", priority: str = "medium") -> Task:
        task = Task(title=title, status=status, priority=priority)
        self._tasks.append(task)
        return task

    def get_all_tasks(self) -> list[Task]:
        return list(self._tasks)

    def pending_count(self) -> int:
        return sum(1 for t in self._tasks if t.status == "pending")


class InMemoryUserKeyStore:
    def __init__(self) -> None:
        self._keys: dict[tuple[str, str], str] = {}

    def set(self, user_id: str, key_id: str, value: str) -> None:
        self._keys[(user_id, key_id)] = value

    def get(self, user_id: str, key_id: str) -> str | None:
        return self._keys.get((user_id, key_id))
