"""OAuth provider ports for the auth domain."""

from abc import abstractmethod
from typing import Protocol

from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.oauth import (
    OAuth1AccessToken,
    OAuth1RequestToken,
    OAuthStateToken,
)
from fedauth.domain.shared.port import Port

OAUTH1 = "oauth1"
OAUTH2 = "oauth2"


class OAuthProvider(Port, Protocol):
    """Port for a configured OAuth 1.0a or OAuth 2.0 provider.

    Implementations are adapters in infrastructure/oauth (e.g.
    AuthlibOAuth2Provider). They raise TokenExchangeError when the provider
    rejects the code or verifier, and FetchUserError when the profile cannot
    be read or lacks a stable user id.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Provider id, also the verification strategy (e.g. 'oauth_google')."""
        ...

    @property
    @abstractmethod
    def protocol(self) -> str:
        """Either OAUTH1 or OAUTH2."""
        ...

    @property
    @abstractmethod
    def authenticatable(self) -> bool:
        """Whether the provider may be used for sign-in and sign-up."""
        ...

    @property
    @abstractmethod
    def block_email_subaddresses(self) -> bool: ...

    @abstractmethod
    async def exchange_request_token(
        self, request_token: OAuth1RequestToken, verifier: str
    ) -> OAuth1AccessToken:
        """Trade an OAuth 1.0a request token and verifier for an access token."""
        ...

    @abstractmethod
    async def fetch_user(self, state: OAuthStateToken, redirect_uri: str) -> OAuthUser:
        """Exchange the callback credentials carried by ``state`` and load the profile.

        Args:
            state: Decoded state token with ``oauth_exchange_code`` (OAuth 2.0)
                or ``oauth1_access_token`` (OAuth 1.0a) filled in
            redirect_uri: The callback URL registered with the provider

        Returns:
            Normalized provider profile with credentials attached
        """
        ...

    def is_oauth1(self) -> bool:
        return self.protocol == OAUTH1


class ProviderRegistry(Port, Protocol):
    """Registry of configured OAuth providers, keyed by provider id."""

    @abstractmethod
    def get(self, provider_id: str) -> OAuthProvider | None: ...

    @abstractmethod
    def available_providers(self) -> list[str]: ...
