"""Adapter for the Anthropic Messages API."""

from __future__ import annotations

from typing import Any

from assistant_core.providers.base import ProviderAdapter, ProviderRequest, text_messages
from assistant_core.types import ProviderResult, TokenUsage, ToolCall, ToolSpec

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


def to_anthropic_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.json_schema(include_defaults=False),
        }
        for tool in tools
    ]


class AnthropicAdapter(ProviderAdapter):
    name = "anthropic"

    async def complete(self, request: ProviderRequest, *, api_key: str) -> ProviderResult:
        system, turns = text_messages(request.messages)
        body: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [m.to_dict() for m in turns],
        }
        if system:
            body["system"] = system
        if request.tools:
            body["tools"] = to_anthropic_tools(request.tools)
        if request.temperature is not None:
            body["temperature"] = request.temperature

        headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        data = await self._post_json(f"{self._base_url}/messages", headers=headers, body=body)

        blocks = data.get("content") or []
        raw_usage = data.get("usage") or {}
        input_tokens = raw_usage.get("input_tokens") or 0
        output_tokens = raw_usage.get("output_tokens") or 0
        usage = TokenUsage(input_tokens, output_tokens, input_tokens + output_tokens)
        model_echo = data.get("model") or request.model

        tool_uses = [b for b in blocks if b.get("type") == "tool_use"]
        if tool_uses:
            return ProviderResult(
                tool_calls=[
                    ToolCall(name=b.get("name", ""), arguments=b.get("input") or {})
                    for b in tool_uses
                ],
                model_echo=model_echo,
                raw_usage=raw_usage,
                usage=usage,
            )

        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        return ProviderResult(text=text, model_echo=model_echo, raw_usage=raw_usage, usage=usage)
