from conftest import ALL_KEYS, make_caller

from assistant_core.agent.compactor import ConversationCompactor, estimate_tokens
from assistant_core.config import CompactionConfig
from assistant_core.providers.errors import ProviderError
from assistant_core.types import Message, ProviderResult

SYSTEM = Message("system", "You are a helpful assistant.")


def _long_conversation(turns: int, *, size: int = 1200, system: bool = True) -> list[Message]:
    messages = [SYSTEM] if system else []
    for i in range(turns):
        role = "user" if i % 2 == 0 else "assistant"
        messages.append(Message(role, f"message {i} " + "x" * size))  # type: ignore[arg-type]
    return messages


def test_token_estimate_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_needs_compaction_requires_both_conditions(adapters, settings) -> None:
    compactor = ConversationCompactor(make_caller(adapters, settings), CompactionConfig())

    assert compactor.needs_compaction(_long_conversation(10))
    assert not compactor.needs_compaction(_long_conversation(6, size=4000))
    assert not compactor.needs_compaction(_long_conversation(10, size=10))


async def test_compaction_keeps_system_and_recent_messages(adapters, settings) -> None:
    adapters["openrouter"].script = [ProviderResult(text="User discussed x at length.")]
    compactor = ConversationCompactor(make_caller(adapters, settings), settings.compaction)
    messages = _long_conversation(12)

    result = await compactor.compact(messages)

    assert result.compacted is True
    assert result.messages[0] == SYSTEM
    assert result.messages[1] == Message(
        "assistant", "[Previous conversation summary: User discussed x at length.]"
    )
    assert result.messages[2:] == messages[-6:]
    assert result.saved_tokens_estimate > 0

    request = adapters["openrouter"].requests[0]
    assert request.model == "or:google/gemini-3-flash-preview"
    assert request.max_tokens == 300
    assert "message 0" in request.messages[-1].content
    assert "message 6" not in request.messages[-1].content


async def test_compaction_without_system_message(adapters, settings) -> None:
    adapters["openrouter"].script = [ProviderResult(text="Summary.")]
    compactor = ConversationCompactor(make_caller(adapters, settings), settings.compaction)
    messages = _long_conversation(11, system=False)

    result = await compactor.compact(messages)

    assert result.compacted is True
    assert result.messages[0].content.startswith("[Previous conversation summary:")
    assert result.messages[1:] == messages[-6:]


async def test_summary_failure_returns_original(adapters, settings) -> None:
    adapters["openrouter"].script = [ProviderError("down", status_code=500)]
    compactor = ConversationCompactor(make_caller(adapters, settings), settings.compaction)
    messages = _long_conversation(12)

    result = await compactor.compact(messages)

    assert result.compacted is False
    assert result.messages == messages


async def test_empty_summary_returns_original(adapters, settings) -> None:
    adapters["openrouter"].script = [ProviderResult(text="   ")]
    compactor = ConversationCompactor(make_caller(adapters, settings), settings.compaction)
    messages = _long_conversation(12)

    result = await compactor.compact(messages)

    assert result.compacted is False
    assert result.messages == messages


async def test_missing_summary_key_skips(adapters, settings) -> None:
    environ = {k: v for k, v in ALL_KEYS.items() if k != "OPENROUTER_API_KEY"}
    compactor = ConversationCompactor(
        make_caller(adapters, settings, environ=environ), settings.compaction
    )
    messages = _long_conversation(12)

    result = await compactor.compact(messages)

    assert result.compacted is False
    assert adapters["openrouter"].calls == 0


async def test_compacting_a_short_conversation_is_a_noop(adapters, settings) -> None:
    compactor = ConversationCompactor(make_caller(adapters, settings), settings.compaction)
    messages = [SYSTEM] + [Message("user", "y" * 4000)] * 6

    result = await compactor.compact(messages)

    assert result.compacted is False
    assert result.messages == messages
    assert adapters["openrouter"].calls == 0


async def test_single_older_message_is_still_summarized(adapters, settings) -> None:
    adapters["openrouter"].script = [ProviderResult(text="Opening question about x.")]
    compactor = ConversationCompactor(make_caller(adapters, settings), settings.compaction)
    messages = _long_conversation(7, size=2000)
    assert compactor.needs_compaction(messages)

    result = await compactor.compact(messages)

    assert result.compacted is True
    assert result.messages[0] == SYSTEM
    assert result.messages[1].content.startswith("[Previous conversation summary:")
    assert result.messages[2:] == messages[-6:]
    assert adapters["openrouter"].calls == 1
    assert "message 0" in adapters["openrouter"].requests[0].messages[-1].content
