"""Provider adapter interface and shared HTTP transport."""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from assistant_core.obs.logging import get_logger
from assistant_core.providers.errors import (
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTLSError,
)
from assistant_core.types import Message, ProviderResult, ToolSpec

logger = get_logger(__name__)


@dataclass(slots=True)
class ProviderRequest:
    """Canonical request handed to every adapter."""

    model: str
    messages: list[Message]
    tools: list[ToolSpec] | None = None
    max_tokens: int | None = None
    temperature: float | None = None


class ProviderAdapter(ABC):
    """Translates canonical requests into one backend's wire shape and back."""

    name: str

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    @abstractmethod
    async def complete(self, request: ProviderRequest, *, api_key: str) -> ProviderResult:
        """Run one non-streaming completion."""

    async def _post_json(
        self,
        url: str,
        *,
        headers: dict[str, str],
        body: dict[str, Any],
    ) -> dict[str, Any]:
        """POST a JSON body and return the decoded reply, raising typed errors."""
        try:
            response = await self._client.post(url, headers=headers, json=body)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                f"Request timeout: {exc}", provider=self.name, status_code=408
            ) from exc
        except httpx.ConnectError as exc:
            if _is_tls_failure(exc):
                raise ProviderTLSError(
                    f"TLS error: {exc}", provider=self.name, status_code=495
                ) from exc
            raise ProviderError(f"Connection failed: {exc}", provider=self.name) from exc
        except httpx.TransportError as exc:
            raise ProviderError(f"Transport error: {exc}", provider=self.name) from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = _error_message(data) or response.reason_phrase or "request failed"
            raise ProviderError(
                f"{self.name} API error ({response.status_code}): {message}",
                provider=self.name,
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"{self.name} returned a non-JSON payload", provider=self.name
            )
        if data.get("error"):
            raise ProviderError(
                f"{self.name} API error: {_error_message(data)}",
                provider=self.name,
                status_code=_error_status(data),
            )
        return data


def _error_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or error)
    if error:
        return str(error)
    return None


def _error_status(data: dict[str, Any]) -> int | None:
    error = data.get("error")
    if isinstance(error, dict):
        code = error.get("code") or error.get("status")
        if isinstance(code, int):
            return code
    return None


def _is_tls_failure(exc: BaseException) -> bool:
    seen: set[int] = set()
    cause: BaseException | None = exc
    while cause is not None and id(cause) not in seen:
        if isinstance(cause, ssl.SSLError):
            return True
        seen.add(id(cause))
        cause = cause.__cause__ or cause.__context__
    return "certificate" in str(exc).lower()


def text_messages(messages: list[Message]) -> tuple[str, list[Message]]:
    """Split system content from the user/assistant turns.

    Backends with a separate system field expect the first turn to come from
    the user, so assistant turns ahead of it (a compaction summary) are folded
    into the system text.
    """
    system_parts = [m.content for m in messages if m.role == "system" and m.content]
    turns = [m for m in messages if m.role != "system"]
    while turns and turns[0].role == "assistant":
        if turns[0].content:
            system_parts.append(turns[0].content)
        turns = turns[1:]
    return "\n\n".join(system_parts), turns
