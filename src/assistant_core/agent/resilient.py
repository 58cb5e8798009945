"""Resilient provider calls: retry in place on rate limits, then fall back.

A rate-limited provider is usually healthy, so it gets a bounded number of
same-provider retries with exponential backoff. Every other retryable failure
goes straight to the fallback chain, one sequential attempt per entry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection, Sequence

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from assistant_core.config import ResilienceConfig
from assistant_core.obs.logging import get_logger
from assistant_core.providers.base import ProviderRequest
from assistant_core.providers.credentials import CredentialResolver
from assistant_core.providers.errors import (
    AllProvidersFailedError,
    ClassifiedError,
    MissingCredentialError,
    ProviderTimeoutError,
    classify_error,
)
from assistant_core.providers.registry import ProviderRegistry
from assistant_core.types import CallOutcome, Message, ProviderResult, ToolSpec

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _is_rate_limited(exc: BaseException) -> bool:
    return classify_error(exc).rate_limited


class ResilientCaller:
    def __init__(
        self,
        registry: ProviderRegistry,
        credentials: CredentialResolver,
        config: ResilienceConfig | None = None,
        *,
        reliable_providers: Collection[str] = ("openai", "anthropic"),
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.registry = registry
        self.credentials = credentials
        self.config = config or ResilienceConfig()
        self.reliable_providers = frozenset(reliable_providers)
        self._sleep = sleep

    async def invoke_once(
        self,
        provider: str,
        model: str,
        messages: Sequence[Message],
        *,
        api_key: str,
        tools: Sequence[ToolSpec] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ProviderResult:
        """One bounded call to one provider. Tools only reach reliable providers."""
        adapter = self.registry.get(provider)
        forwarded = list(tools) if tools and provider in self.reliable_providers else None
        request = ProviderRequest(
            model=model,
            messages=list(messages),
            tools=forwarded,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        timeout = self.config.provider_timeout_seconds
        try:
            return await asyncio.wait_for(adapter.complete(request, api_key=api_key), timeout)
        except TimeoutError as exc:
            raise ProviderTimeoutError(
                f"{provider} did not answer within {timeout}s", provider=provider, status_code=408
            ) from exc

    async def call(
        self,
        provider: str,
        model: str,
        messages: Sequence[Message],
        *,
        tools: Sequence[ToolSpec] | None = None,
        user_id: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CallOutcome:
        """Call the primary provider, retrying and falling back as needed.

        Raises:
            ProviderError: the primary failed with a terminal caller error
                (bad request, context too long); it propagates unchanged.
            AllProvidersFailedError: the primary and every usable fallback failed.
        """
        kwargs = {"tools": tools, "max_tokens": max_tokens, "temperature": temperature}

        try:
            api_key = self.credentials.resolve(provider, user_id)
            if not api_key:
                raise MissingCredentialError(provider)
            result = await self._with_rate_limit_retry(provider, model, messages, api_key, kwargs)
            return CallOutcome(result=result, provider=provider, model=model)
        except Exception as exc:
            classified = classify_error(exc)
            logger.warning(
                "provider_call_failed",
                provider=provider,
                model=model,
                error_class=classified.kind.value,
                status=classified.status,
                error=classified.message,
            )
            if classified.terminal:
                raise

        return await self._fall_back(provider, messages, classified, user_id, kwargs)

    async def _with_rate_limit_retry(
        self,
        provider: str,
        model: str,
        messages: Sequence[Message],
        api_key: str,
        kwargs: dict,
    ) -> ProviderResult:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_rate_limit_retries + 1),
            wait=wait_exponential(
                multiplier=self.config.backoff_base_seconds,
                max=self.config.backoff_cap_seconds,
            ),
            retry=retry_if_exception(_is_rate_limited),
            sleep=self._sleep,
            before_sleep=self._log_retry(provider),
            reraise=True,
        )
        return await retrying(
            self.invoke_once, provider, model, messages, api_key=api_key, **kwargs
        )

    async def _fall_back(
        self,
        primary: str,
        messages: Sequence[Message],
        last_error: ClassifiedError,
        user_id: str | None,
        kwargs: dict,
    ) -> CallOutcome:
        attempts: list[tuple[str, str]] = [(primary, last_error.kind.value)]

        for entry in self.config.fallback_chain:
            if entry.provider == primary:
                continue
            api_key = self.credentials.resolve(entry.provider, user_id)
            if not api_key:
                logger.debug("fallback_skipped", provider=entry.provider, reason="no_credential")
                continue

            logger.info("fallback_attempt", provider=entry.provider, model=entry.model)
            try:
                result = await self.invoke_once(
                    entry.provider, entry.model, messages, api_key=api_key, **kwargs
                )
            except Exception as exc:
                last_error = classify_error(exc)
                attempts.append((entry.provider, last_error.kind.value))
                logger.warning(
                    "fallback_failed",
                    provider=entry.provider,
                    model=entry.model,
                    error_class=last_error.kind.value,
                    error=last_error.message,
                )
                continue

            logger.info("fallback_succeeded", provider=entry.provider, model=entry.model)
            return CallOutcome(
                result=result, provider=entry.provider, model=entry.model, used_fallback=True
            )

        logger.error("all_providers_failed", attempts=attempts, error=last_error.message)
        raise AllProvidersFailedError(last_error, attempts)

    @staticmethod
    def _log_retry(provider: str) -> Callable[[RetryCallState], None]:
        def _before_sleep(state: RetryCallState) -> None:
            logger.info(
                "rate_limit_retry",
                provider=provider,
                attempt=state.attempt_number,
                delay_seconds=state.next_action.sleep if state.next_action else None,
            )

        return _before_sleep
