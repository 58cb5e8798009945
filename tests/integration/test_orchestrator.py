"""End-to-end turn tests for the chat orchestrator over scripted adapters."""

import asyncio

import pytest
from conftest import ScriptedAdapter, make_caller

from assistant_core.agent.orchestrator import ChatOrchestrator, ChatTurn
from assistant_core.config import ResilienceConfig, Settings
from assistant_core.providers.base import ProviderRequest
from assistant_core.providers.errors import ProviderError, RequestDeadlineExceeded
from assistant_core.state import RuntimeState, utc_now
from assistant_core.stores import InMemoryMemoryStore, InMemoryTaskStore, InMemoryUsageStore
from assistant_core.types import (
    Message,
    ProviderResult,
    ToolCall,
    ToolParameter,
    ToolSpec,
    UsageEntry,
)

TASK_TOOL = ToolSpec(
    name="manage_task",
    description="Create or update a task",
    parameters={"title": ToolParameter(required=True)},
)
EMAIL_TOOL = ToolSpec(name="send_email", description="Send an email")


def build(adapters, settings, **kwargs) -> ChatOrchestrator:
    kwargs.setdefault("usage_store", InMemoryUsageStore())
    kwargs.setdefault("memory_store", InMemoryMemoryStore())
    kwargs.setdefault("task_store", InMemoryTaskStore())
    kwargs.setdefault("state", RuntimeState())
    return ChatOrchestrator(settings, make_caller(adapters, settings), **kwargs)


class BrokenMemory(InMemoryMemoryStore):
    def get_memory_context(self, query: str | None = None) -> str:
        raise RuntimeError("memory backend offline")


class SlowAdapter(ScriptedAdapter):
    async def complete(self, request: ProviderRequest, *, api_key: str) -> ProviderResult:
        await asyncio.sleep(1)
        return await super().complete(request, api_key=api_key)


async def test_greeting_routes_to_cheapest_simple_model(adapters, settings) -> None:
    orchestrator = build(adapters, settings)

    reply = await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")]))
    meta = reply.to_payload()["_meta"]

    assert reply.response == "openai says hi"
    assert meta["routed"] is True
    assert meta["complexity"] == "simple"
    assert meta["originalModel"] == "gpt-4.1"
    assert meta["actualModel"] == "gpt-4.1-nano"
    assert meta["provider"] == "openai"
    assert meta["routingReason"] == "complexity-tier routing: simple"
    assert meta["fallback"] is False
    assert meta["estimatedCost"] > 0


async def test_long_code_block_is_complex(adapters, settings) -> None:
    orchestrator = build(adapters, settings)
    code = "```python\n" + "total = total + 1\n" * 40 + "```"

    reply = await orchestrator.handle(ChatTurn(messages=[Message("user", code)]))

    assert reply.meta.complexity == "complex"
    assert reply.meta.routing_reason == "complexity-tier routing: complex"


async def test_explicit_model_is_respected(adapters, settings) -> None:
    orchestrator = build(adapters, settings)

    reply = await orchestrator.handle(
        ChatTurn(messages=[Message("user", "hi")], model="claude-sonnet-4-5-20250929")
    )

    assert reply.meta.routed is False
    assert reply.meta.actual_model == "claude-sonnet-4-5-20250929"
    assert reply.meta.routing_reason == "explicit choice respected"
    assert adapters["anthropic"].calls == 1
    assert adapters["openai"].calls == 0


async def test_tool_calls_come_back_without_text(adapters, settings) -> None:
    adapters["openai"].script = [
        ProviderResult(tool_calls=[ToolCall("manage_task", {"title": "buy milk"})])
    ]
    orchestrator = build(adapters, settings)

    reply = await orchestrator.handle(
        ChatTurn(messages=[Message("user", "add a task: buy milk")], tools=[TASK_TOOL])
    )
    payload = reply.to_payload()

    assert "response" not in payload
    assert payload["toolCalls"] == [{"name": "manage_task", "arguments": {"title": "buy milk"}}]
    assert payload["approvalRequired"] is False
    assert adapters["openai"].requests[0].tools == [TASK_TOOL]


async def test_tool_request_upgrades_unreliable_model(adapters, settings) -> None:
    orchestrator = build(adapters, settings)

    reply = await orchestrator.handle(
        ChatTurn(
            messages=[Message("user", "create a task to renew the domain")],
            tools=[TASK_TOOL],
            model="kimi-k2.5",
        )
    )

    assert reply.meta.provider == "openai"
    assert reply.meta.actual_model == "gpt-4.1-mini"
    assert adapters["moonshot"].calls == 0


async def test_narrated_tool_call_is_retried_on_capable_provider(adapters, settings) -> None:
    adapters["moonshot"].script = [ProviderResult(text="Let me check that for you.")]
    adapters["openai"].script = [
        ProviderResult(tool_calls=[ToolCall("manage_task", {"title": "follow up"})])
    ]
    orchestrator = build(adapters, settings)

    reply = await orchestrator.handle(
        ChatTurn(
            messages=[Message("user", "what should happen next with it?")],
            tools=[TASK_TOOL],
            model="kimi-k2.5",
        )
    )

    assert adapters["moonshot"].requests[0].tools is None
    assert reply.tool_calls == [ToolCall("manage_task", {"title": "follow up"})]
    assert reply.meta.provider == "openai"
    assert reply.meta.actual_model == "gpt-4.1-mini"


async def test_intent_repair_on_primary_clears_fallback(adapters, settings) -> None:
    environ = {"OPENAI_API_KEY": "sk-openai", "GEMINI_API_KEY": "sk-gemini"}
    adapters["openai"].script = [
        ProviderError("openai API error (500): boom", status_code=500),
        ProviderResult(tool_calls=[ToolCall("manage_task", {"title": "report"})]),
    ]
    adapters["google"].script = [ProviderResult(text="Let me update that task for you")]
    orchestrator = ChatOrchestrator(settings, make_caller(adapters, settings, environ=environ))

    reply = await orchestrator.handle(
        ChatTurn(messages=[Message("user", "add a task: finish the report")], tools=[TASK_TOOL])
    )

    assert adapters["google"].calls == 1
    assert reply.tool_calls == [ToolCall("manage_task", {"title": "report"})]
    assert reply.meta.provider == "openai"
    assert reply.meta.fallback is False


async def test_sensitive_tool_needs_approval(adapters, settings) -> None:
    adapters["anthropic"].script = [
        ProviderResult(tool_calls=[ToolCall("send_email", {"to": "bob@example.com"})])
    ]
    orchestrator = build(adapters, settings)
    turn = ChatTurn(
        messages=[Message("user", "tell Bob the invoice is ready")],
        tools=[EMAIL_TOOL],
        model="claude-opus-4-6",
    )

    payload = (await orchestrator.handle(turn)).to_payload()

    assert payload["approvalRequired"] is True
    assert payload["toolCalls"] == []
    assert payload["blockedTools"] == ["send_email"]
    assert payload["response"] == "Approval required for sensitive tools: send_email"


async def test_approved_sensitive_tool_passes(adapters, settings) -> None:
    adapters["anthropic"].script = [ProviderResult(tool_calls=[ToolCall("send_email", {})])]
    orchestrator = build(adapters, settings)

    reply = await orchestrator.handle(
        ChatTurn(
            messages=[Message("user", "tell Bob the invoice is ready")],
            tools=[EMAIL_TOOL],
            model="claude-opus-4-6",
            approved_tools=["send_email"],
        )
    )

    assert reply.approval_required is False
    assert reply.tool_calls == [ToolCall("send_email", {})]


async def test_server_error_falls_back(adapters, settings) -> None:
    adapters["openai"].script = [ProviderError("openai API error (500): boom", status_code=500)]
    orchestrator = build(adapters, settings)

    reply = await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")]))

    assert reply.response == "anthropic says hi"
    assert reply.meta.fallback is True
    assert reply.meta.provider == "anthropic"


async def test_memory_and_tasks_reach_the_system_message(adapters, settings) -> None:
    memory = InMemoryMemoryStore()
    memory.save("atlas launch", "Atlas launch moved to Friday", importance="high")
    tasks = InMemoryTaskStore()
    tasks.add("Ship release notes")
    orchestrator = build(adapters, settings, memory_store=memory, task_store=tasks)

    await orchestrator.handle(
        ChatTurn(
            messages=[
                Message("system", "You are a helpful assistant."),
                Message("user", "when is the atlas launch?"),
            ],
            model="gpt-4o",
        )
    )

    sent = adapters["openai"].requests[0].messages
    assert sent[0].role == "system"
    assert sent[0].content.startswith("You are a helpful assistant.")
    assert "Atlas launch moved to Friday" in sent[0].content
    assert "[Situational context: 1 pending task(s)]" in sent[0].content


async def test_context_becomes_system_message_when_missing(adapters, settings) -> None:
    tasks = InMemoryTaskStore()
    tasks.add("Call the bank")
    orchestrator = build(adapters, settings, task_store=tasks)

    await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")]))

    sent = adapters["openai"].requests[0].messages
    assert [m.role for m in sent] == ["system", "user"]
    assert sent[0].content == "[Situational context: 1 pending task(s)]"


async def test_broken_memory_store_does_not_fail_the_turn(adapters, settings) -> None:
    orchestrator = build(adapters, settings, memory_store=BrokenMemory())

    reply = await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")]))

    assert reply.response == "openai says hi"


async def test_usage_is_recorded_per_session(adapters, settings) -> None:
    usage = InMemoryUsageStore()
    state = RuntimeState()
    orchestrator = build(adapters, settings, usage_store=usage, state=state)

    await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")], user_id="u1"))

    [entry] = usage.list_recent()
    assert entry.success is True
    assert entry.model == "gpt-4.1-nano"
    assert entry.endpoint == "/chat session:u1"
    assert entry.routing_reason == "complexity-tier routing: simple"
    assert entry.total_tokens > 0
    assert state.turns == 1


async def test_session_budget_is_per_user(adapters, settings) -> None:
    usage = InMemoryUsageStore()
    usage.log_usage(
        UsageEntry(
            timestamp=utc_now().isoformat(),
            model="claude-opus-4-6",
            provider="anthropic",
            input_tokens=1000,
            output_tokens=1000,
            total_tokens=2000,
            cost=1.5,
            success=True,
            endpoint="/chat session:alice",
        )
    )
    orchestrator = build(adapters, settings, usage_store=usage)

    reply = await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")], user_id="al"))

    assert reply.meta.routing_reason == "complexity-tier routing: simple"


async def test_failed_turn_still_logs_usage(adapters, settings) -> None:
    adapters["openai"].script = [ProviderError("openai API error (400): bad", status_code=400)]
    usage = InMemoryUsageStore()
    orchestrator = build(adapters, settings, usage_store=usage)

    with pytest.raises(ProviderError):
        await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")], source="telegram"))

    [entry] = usage.list_recent()
    assert entry.success is False
    assert entry.cost == 0
    assert entry.model == "gpt-4.1-nano"
    assert entry.endpoint == "/chat (telegram) session:anonymous"


async def test_turn_deadline(adapters) -> None:
    settings = Settings(resilience=ResilienceConfig(request_deadline_seconds=0.05))
    adapters["openai"] = SlowAdapter("openai")
    usage = InMemoryUsageStore()
    orchestrator = build(adapters, settings, usage_store=usage)

    with pytest.raises(RequestDeadlineExceeded):
        await orchestrator.handle(ChatTurn(messages=[Message("user", "hi")]))

    assert usage.list_recent()[0].success is False
