"""Provider registry implementation."""

import logging

from fedauth.config import ProviderConfig
from fedauth.domain.auth.port.oauth_provider import OAUTH1, OAuthProvider, ProviderRegistry
from fedauth.infrastructure.oauth.provider import AuthlibOAuth1Provider, AuthlibOAuth2Provider

logger = logging.getLogger(__name__)


class InMemoryProviderRegistry(ProviderRegistry):
    """In-memory provider registry.

    Stores a mapping of provider ids to their implementations.
    Providers are registered at application startup via DI.
    """

    def __init__(self, providers: dict[str, OAuthProvider] | None = None) -> None:
        self._providers: dict[str, OAuthProvider] = providers or {}

    @classmethod
    def from_config(cls, providers: dict[str, ProviderConfig]) -> "InMemoryProviderRegistry":
        """Build adapters for every configured provider with credentials."""
        registry = cls()
        for provider_id, config in providers.items():
            if not config.client_id:
                logger.warning("OAuth provider %s has no client_id, skipping", provider_id)
                continue
            adapter: OAuthProvider
            if config.protocol == OAUTH1:
                adapter = AuthlibOAuth1Provider(provider_id, config)
            else:
                adapter = AuthlibOAuth2Provider(provider_id, config)
            registry.register(provider_id, adapter)
        return registry

    def get(self, provider_id: str) -> OAuthProvider | None:
        return self._providers.get(provider_id)

    def available_providers(self) -> list[str]:
        return list(self._providers.keys())

    def register(self, provider_id: str, provider: OAuthProvider) -> None:
        self._providers[provider_id] = provider
