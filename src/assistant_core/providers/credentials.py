"""API key resolution: an ordered list of strategies, first hit wins."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from typing import Protocol

from assistant_core.config import ProviderEndpoint
from assistant_core.obs.logging import get_logger
from assistant_core.stores import UserKeyStore

logger = get_logger(__name__)


class CredentialStrategy(Protocol):
    def lookup(self, provider: str, user_id: str | None) -> str | None: ...


class EnvironmentCredentials:
    """Reads the provider's configured environment variable."""

    def __init__(
        self,
        endpoints: Mapping[str, ProviderEndpoint],
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._endpoints = endpoints
        self._environ = environ if environ is not None else os.environ

    def lookup(self, provider: str, user_id: str | None) -> str | None:
        endpoint = self._endpoints.get(provider)
        if endpoint is None:
            return None
        return self._environ.get(endpoint.env_key) or None


class UserOverrideCredentials:
    """Reads a key the user saved for themselves."""

    def __init__(self, endpoints: Mapping[str, ProviderEndpoint], store: UserKeyStore) -> None:
        self._endpoints = endpoints
        self._store = store

    def lookup(self, provider: str, user_id: str | None) -> str | None:
        endpoint = self._endpoints.get(provider)
        if endpoint is None or not user_id:
            return None
        return self._store.get(user_id, endpoint.user_key_id) or None


class CredentialResolver:
    def __init__(self, strategies: Sequence[CredentialStrategy]) -> None:
        self._strategies = list(strategies)

    def resolve(self, provider: str, user_id: str | None = None) -> str | None:
        for strategy in self._strategies:
            try:
                key = strategy.lookup(provider, user_id)
            except Exception:
                logger.warning(
                    "credential_lookup_failed",
                    provider=provider,
                    strategy=type(strategy).__name__,
                    exc_info=True,
                )
                continue
            if key:
                return key
        return None

    def has(self, provider: str, user_id: str | None = None) -> bool:
        return self.resolve(provider, user_id) is not None
