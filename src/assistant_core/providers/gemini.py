"""Adapter for the Google Gemini generateContent API."""

from __future__ import annotations

from typing import Any

from assistant_core.providers.base import ProviderAdapter, ProviderRequest, text_messages
from assistant_core.types import ProviderResult, TokenUsage, ToolCall, ToolSpec


def to_gemini_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "functionDeclarations": [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.json_schema(include_defaults=False),
                }
                for tool in tools
            ]
        }
    ]


class GeminiAdapter(ProviderAdapter):
    name = "google"

    async def complete(self, request: ProviderRequest, *, api_key: str) -> ProviderResult:
        system, turns = text_messages(request.messages)
        body: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in turns
            ]
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        if request.tools:
            body["tools"] = to_gemini_tools(request.tools)
        generation: dict[str, Any] = {}
        if request.max_tokens is not None:
            generation["maxOutputTokens"] = request.max_tokens
        if request.temperature is not None:
            generation["temperature"] = request.temperature
        if generation:
            body["generationConfig"] = generation

        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
        data = await self._post_json(
            f"{self._base_url}/models/{request.model}:generateContent",
            headers=headers,
            body=body,
        )

        candidates = data.get("candidates") or [{}]
        parts = (candidates[0].get("content") or {}).get("parts") or []
        raw_usage = data.get("usageMetadata") or {}
        usage = TokenUsage(
            input_tokens=raw_usage.get("promptTokenCount") or 0,
            output_tokens=raw_usage.get("candidatesTokenCount") or 0,
            total_tokens=raw_usage.get("totalTokenCount") or 0,
        )

        calls = [
            ToolCall(
                name=part["functionCall"].get("name", ""),
                arguments=part["functionCall"].get("args") or {},
            )
            for part in parts
            if isinstance(part.get("functionCall"), dict)
        ]
        if calls:
            return ProviderResult(
                tool_calls=calls, model_echo=request.model, raw_usage=raw_usage, usage=usage
            )

        text = "".join(part.get("text", "") for part in parts)
        return ProviderResult(text=text, model_echo=request.model, raw_usage=raw_usage, usage=usage)
