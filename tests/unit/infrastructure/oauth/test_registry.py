"""Unit tests for InMemoryProviderRegistry."""

import pytest

from fedauth.config import ProviderConfig
from fedauth.domain.auth.error import TokenExchangeError
from fedauth.domain.auth.model.oauth import OAuth1RequestToken
from fedauth.infrastructure.oauth.provider import AuthlibOAuth1Provider, AuthlibOAuth2Provider
from fedauth.infrastructure.oauth.registry import InMemoryProviderRegistry


class TestFromConfig:
    def test_builds_adapter_per_protocol(self):
        registry = InMemoryProviderRegistry.from_config(
            {
                "oauth_google": ProviderConfig(client_id="g", uses_pkce=True),
                "oauth_x": ProviderConfig(client_id="x", protocol="oauth1"),
            }
        )

        google = registry.get("oauth_google")
        x = registry.get("oauth_x")
        assert isinstance(google, AuthlibOAuth2Provider)
        assert isinstance(x, AuthlibOAuth1Provider)
        assert x.is_oauth1()
        assert not google.is_oauth1()

    def test_provider_without_credentials_is_skipped(self):
        registry = InMemoryProviderRegistry.from_config({"oauth_github": ProviderConfig()})

        assert registry.get("oauth_github") is None
        assert registry.available_providers() == []

    def test_provider_flags(self):
        registry = InMemoryProviderRegistry.from_config(
            {
                "oauth_slack": ProviderConfig(
                    client_id="s", authenticatable=False, block_email_subaddresses=True
                )
            }
        )

        slack = registry.get("oauth_slack")
        assert slack.id == "oauth_slack"
        assert slack.authenticatable is False
        assert slack.block_email_subaddresses is True


class TestOAuth2Provider:
    @pytest.mark.asyncio
    async def test_request_token_exchange_not_supported(self):
        provider = AuthlibOAuth2Provider("oauth_google", ProviderConfig(client_id="g"))
        request_token = OAuth1RequestToken.model_construct(nonce="n", token="t", token_secret="s")

        with pytest.raises(TokenExchangeError):
            await provider.exchange_request_token(request_token, "verifier")
