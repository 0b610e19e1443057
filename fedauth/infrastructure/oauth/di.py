"""DI provider for OAuth infrastructure."""

from typing import AsyncIterable

import httpx
from dishka import provide

from fedauth.config import Config
from fedauth.domain.auth.port.disposable_email import DisposableEmailChecker
from fedauth.domain.auth.port.oauth_provider import ProviderRegistry
from fedauth.infrastructure.oauth.disposable_email import HttpDisposableEmailChecker
from fedauth.infrastructure.oauth.provider import HTTP_TIMEOUT
from fedauth.infrastructure.oauth.registry import InMemoryProviderRegistry
from fedauth.util.di.base import Provider
from fedauth.util.di.scope import Scope


class OAuthInfraProvider(Provider):
    """DI provider for OAuth and email-quality adapters."""

    @provide(scope=Scope.APP)
    async def get_auth_http_client(self) -> AsyncIterable[httpx.AsyncClient]:
        """Shared HTTP client for auth operations (connection pooling)."""
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            yield client

    @provide(scope=Scope.APP)
    def get_provider_registry(self, config: Config) -> ProviderRegistry:
        """Provide ProviderRegistry with configured OAuth providers."""
        return InMemoryProviderRegistry.from_config(config.auth.providers)

    @provide(scope=Scope.APP)
    def get_disposable_email_checker(
        self, config: Config, http_client: httpx.AsyncClient
    ) -> DisposableEmailChecker:
        return HttpDisposableEmailChecker(
            url=config.auth.restrictions.disposable_email_check_url,
            http_client=http_client,
        )
