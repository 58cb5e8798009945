"""Provider error hierarchy and failure classification.

Every failure seen by the resilient caller is reduced to one `ErrorClass`.
Typed exceptions and HTTP status codes are authoritative; message heuristics
only cover failures that arrive without either.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderError(Exception):
    """Base exception for failed provider calls."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call exceeds its timeout."""


class ProviderTLSError(ProviderError):
    """Raised when the TLS handshake with a provider fails."""


class ProviderResponseError(ProviderError):
    """Raised when a provider answers with a payload we cannot interpret."""


class MissingCredentialError(ProviderError):
    """Raised when no API key can be resolved for a provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"No API key found for {provider}", provider=provider, status_code=401)


class UnknownProviderError(ProviderError):
    """Raised when no adapter is registered under a provider name."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"No adapter registered for provider: {provider}", provider=provider)


class AllProvidersFailedError(Exception):
    """Raised when the primary provider and every fallback failed."""

    def __init__(self, last_error: ClassifiedError, attempts: list[tuple[str, str]]) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"All providers failed. Last error: {last_error.message}")


class RequestDeadlineExceeded(Exception):
    """Raised when a whole chat turn runs past its deadline."""

    def __init__(self, deadline_seconds: float) -> None:
        self.deadline_seconds = deadline_seconds
        super().__init__(f"Request exceeded deadline of {deadline_seconds}s")


class ErrorClass(str, Enum):
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    BAD_REQUEST = "bad_request"
    AUTH_ERROR = "auth_error"
    CONTEXT_TOO_LONG = "context_too_long"
    TLS_ERROR = "tls_error"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


_TERMINAL = frozenset({ErrorClass.BAD_REQUEST, ErrorClass.CONTEXT_TOO_LONG})


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    kind: ErrorClass
    status: int | None
    message: str

    @property
    def terminal(self) -> bool:
        """Caller errors: never retried, never sent down the fallback chain."""
        return self.kind in _TERMINAL

    @property
    def rate_limited(self) -> bool:
        return self.kind is ErrorClass.RATE_LIMITED


_CONTEXT_HINTS = (
    "context length",
    "context_length",
    "maximum context",
    "context window",
    "too many tokens",
    "too long",
)
_TLS_HINTS = ("self-signed certificate", "certificate", "unable_to_verify_leaf_signature", "ssl")
_TIMEOUT_HINTS = ("timeout", "timed out", "etimedout")
_AUTH_HINTS = ("unauthorized", "invalid api key", "incorrect api key", "forbidden")


def classify_error(exc: BaseException) -> ClassifiedError:
    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()
    status = getattr(exc, "status_code", None)

    if isinstance(exc, ProviderTimeoutError | TimeoutError):
        return ClassifiedError(ErrorClass.TIMEOUT, status or 408, message)
    if isinstance(exc, ProviderTLSError):
        return ClassifiedError(ErrorClass.TLS_ERROR, status or 495, message)
    if isinstance(exc, MissingCredentialError):
        return ClassifiedError(ErrorClass.AUTH_ERROR, 401, message)

    if status == 429 or "rate limit" in lowered:
        return ClassifiedError(ErrorClass.RATE_LIMITED, 429, message)
    if status is not None and status >= 500:
        return ClassifiedError(ErrorClass.SERVER_ERROR, status, message)
    if any(hint in lowered for hint in _CONTEXT_HINTS):
        return ClassifiedError(ErrorClass.CONTEXT_TOO_LONG, status or 400, message)
    if status in (401, 403) or any(hint in lowered for hint in _AUTH_HINTS):
        return ClassifiedError(ErrorClass.AUTH_ERROR, status or 401, message)
    if status == 400 or "bad request" in lowered:
        return ClassifiedError(ErrorClass.BAD_REQUEST, 400, message)
    if status is None and ("internal server error" in lowered or "503" in lowered):
        return ClassifiedError(ErrorClass.SERVER_ERROR, 500, message)
    if any(hint in lowered for hint in _TLS_HINTS):
        return ClassifiedError(ErrorClass.TLS_ERROR, 495, message)
    if any(hint in lowered for hint in _TIMEOUT_HINTS):
        return ClassifiedError(ErrorClass.TIMEOUT, 408, message)
    return ClassifiedError(ErrorClass.UNKNOWN, status, message)
