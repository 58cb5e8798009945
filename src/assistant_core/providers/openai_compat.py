"""Adapter for OpenAI-style chat completion backends.

Covers OpenAI itself plus the backends that mirror its API (OpenRouter, Groq,
Moonshot, Perplexity); per-backend quirks are constructor options.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from assistant_core.obs.logging import get_logger
from assistant_core.providers.base import ProviderAdapter, ProviderRequest
from assistant_core.routing.models import wire_model_id
from assistant_core.types import ProviderResult, TokenUsage, ToolCall, ToolSpec

logger = get_logger(__name__)


def to_openai_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.json_schema(),
            },
        }
        for tool in tools
    ]


def extract_openai_usage(data: dict[str, Any]) -> TokenUsage:
    usage = data.get("usage") or {}
    return TokenUsage(
        input_tokens=usage.get("prompt_tokens") or 0,
        output_tokens=usage.get("completion_tokens") or 0,
        total_tokens=usage.get("total_tokens") or 0,
    )


class OpenAICompatibleAdapter(ProviderAdapter):
    def __init__(
        self,
        name: str,
        client: httpx.AsyncClient,
        base_url: str,
        *,
        supports_tools: bool = True,
        fixed_temperature: float | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(client, base_url)
        self.name = name
        self.supports_tools = supports_tools
        self.fixed_temperature = fixed_temperature
        self.extra_headers = dict(extra_headers or {})

    async def complete(self, request: ProviderRequest, *, api_key: str) -> ProviderResult:
        model_id = wire_model_id(request.model)
        body: dict[str, Any] = {
            "model": model_id,
            "messages": [m.to_dict() for m in request.messages],
        }
        if request.tools and self.supports_tools:
            body["tools"] = to_openai_tools(request.tools)
            body["tool_choice"] = "auto"
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if self.fixed_temperature is not None:
            body["temperature"] = self.fixed_temperature
        elif request.temperature is not None:
            body["temperature"] = request.temperature

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            **self.extra_headers,
        }
        data = await self._post_json(
            f"{self._base_url}/chat/completions", headers=headers, body=body
        )
        return self._parse(data, model_id)

    def _parse(self, data: dict[str, Any], model_id: str) -> ProviderResult:
        choices = data.get("choices") or [{}]
        message = choices[0].get("message") or {}
        model_echo = data.get("model") or model_id
        usage = extract_openai_usage(data)

        raw_calls = message.get("tool_calls") or []
        if raw_calls:
            calls = [self._tool_call(tc) for tc in raw_calls]
            return ProviderResult(
                tool_calls=calls,
                model_echo=model_echo,
                raw_usage=data.get("usage") or {},
                usage=usage,
            )
        return ProviderResult(
            text=message.get("content") or "",
            model_echo=model_echo,
            raw_usage=data.get("usage") or {},
            usage=usage,
        )

    def _tool_call(self, raw: dict[str, Any]) -> ToolCall:
        function = raw.get("function") or {}
        name = function.get("name", "")
        try:
            arguments = json.loads(function.get("arguments") or "{}")
        except json.JSONDecodeError:
            logger.warning("tool_call_arguments_unparseable", provider=self.name, tool=name)
            arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}
        return ToolCall(name=name, arguments=arguments)
