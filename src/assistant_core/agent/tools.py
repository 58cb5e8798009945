"""Built-in local tools over the memory and task stores."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from assistant_core.agent.registry import RegisteredTool, ToolRegistry
from assistant_core.stores import MemoryStore, TaskStore


class SaveMemoryInput(BaseModel):
    topic: str = Field(min_length=1, description="Short label for the memory")
    content: str = Field(min_length=1, description="What to remember")
    importance: Literal["low", "medium", "high"] = "medium"
    kind: str = Field(default="fact", description="fact, preference, client, decision or task")


class RecallMemoryInput(BaseModel):
    query: str = Field(min_length=1, description="What to look for")
    limit: int = Field(default=5, ge=1, le=20)


class ListTasksInput(BaseModel):
    status: str | None = Field(default=None, description="Only tasks with this status")


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    memory: MemoryStore,
    tasks: TaskStore,
) -> None:
    """Register the default local tool set.

    Tools:
    - `save_memory`: store a fact for later turns.
    - `recall_memory`: keyword-ranked lookup of stored facts.
    - `list_tasks`: read-only task listing, optionally filtered by status.
    """

    def _save(input_data: SaveMemoryInput) -> str:
        entry = memory.save(
            input_data.topic,
            input_data.content,
            kind=input_data.kind,
            importance=input_data.importance,
        )
        return f"SAVED: {entry.id}"

    def _recall(input_data: RecallMemoryInput) -> str:
        entries = memory.recall(input_data.query, input_data.limit)
        if not entries:
            return "NO_RESULTS"
        return "\n".join(entry.render() for entry in entries)

    def _list_tasks(input_data: ListTasksInput) -> str:
        rows = [
            task
            for task in tasks.get_all_tasks()
            if input_data.status is None or task.status == input_data.status
        ]
        if not rows:
            return "NO_TASKS"
        return "\n".join(f"- [{t.status}] {t.title} (priority: {t.priority})" for t in rows)

    registry.register(
        RegisteredTool(
            name="save_memory",
            description="Remember a fact, preference or decision for future conversations.",
            args_schema=SaveMemoryInput,
            handler=_save,
            tags=["memory"],
        )
    )
    registry.register(
        RegisteredTool(
            name="recall_memory",
            description="Search remembered facts relevant to a query.",
            args_schema=RecallMemoryInput,
            handler=_recall,
            tags=["memory"],
        )
    )
    registry.register(
        RegisteredTool(
            name="list_tasks",
            description="List the user's tasks, optionally filtered by status.",
            args_schema=ListTasksInput,
            handler=_list_tasks,
            tags=["tasks"],
        )
    )
