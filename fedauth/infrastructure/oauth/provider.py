"""Authlib-backed OAuth provider adapters."""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth1Client, AsyncOAuth2Client

from fedauth.config import ProviderConfig
from fedauth.domain.auth.error import FetchUserError, TokenExchangeError
from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.oauth import (
    OAuth1AccessToken,
    OAuth1RequestToken,
    OAuthStateToken,
)
from fedauth.domain.auth.port.oauth_provider import OAUTH1, OAUTH2, OAuthProvider
from fedauth.infrastructure.oauth.profile import primary_email, profile_from_userinfo

logger = logging.getLogger(__name__)

# HTTP client timeout configuration
HTTP_TIMEOUT = httpx.Timeout(
    connect=5.0,
    read=10.0,
    write=5.0,
    pool=5.0,
)


class _AuthlibProvider(OAuthProvider):
    def __init__(self, provider_id: str, config: ProviderConfig) -> None:
        self._id = provider_id
        self._config = config

    @property
    def id(self) -> str:
        return self._id

    @property
    def authenticatable(self) -> bool:
        return self._config.authenticatable

    @property
    def block_email_subaddresses(self) -> bool:
        return self._config.block_email_subaddresses

    async def _get_json(self, client: httpx.AsyncClient, url: str) -> Any:
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Fetching %s profile from %s failed: %s", self._id, url, e)
            raise FetchUserError(f"Unable to fetch {self._id} profile") from e


class AuthlibOAuth2Provider(_AuthlibProvider):
    """OAuth 2.0 provider: authorization-code exchange (with optional PKCE), then userinfo."""

    @property
    def protocol(self) -> str:
        return OAUTH2

    async def exchange_request_token(
        self, request_token: OAuth1RequestToken, verifier: str
    ) -> OAuth1AccessToken:
        raise TokenExchangeError(f"{self._id} is not an OAuth 1.0a provider")

    async def fetch_user(self, state: OAuthStateToken, redirect_uri: str) -> OAuthUser:
        if not state.oauth_exchange_code:
            raise TokenExchangeError(f"No authorization code for {self._id}")

        params: dict[str, str] = {"code": state.oauth_exchange_code}
        if self._config.uses_pkce and state.pkce_code_verifier:
            params["code_verifier"] = state.pkce_code_verifier

        async with AsyncOAuth2Client(
            client_id=self._config.client_id,
            client_secret=self._config.client_secret,
            redirect_uri=redirect_uri,
            timeout=HTTP_TIMEOUT,
        ) as client:
            try:
                token = await client.fetch_token(self._config.token_url, **params)
            except (AuthlibBaseError, httpx.HTTPError) as e:
                logger.warning("%s token exchange failed: %s", self._id, e)
                raise TokenExchangeError(f"{self._id} rejected the authorization code") from e

            data = await self._get_json(client, self._config.userinfo_url)
            if not isinstance(data, dict):
                raise FetchUserError(f"Unexpected {self._id} userinfo response")
            oauth_user = profile_from_userinfo(self._id, data)

            if self._config.emails_url and not oauth_user.email_address_verified:
                emails = await self._get_json(client, self._config.emails_url)
                if isinstance(emails, list):
                    email, verified = primary_email(emails)
                    if email:
                        oauth_user.email_address = email
                        oauth_user.email_address_verified = verified

        oauth_user.access_token = token.get("access_token", "")
        oauth_user.refresh_token = token.get("refresh_token") or ""
        expires_at = token.get("expires_at")
        if expires_at:
            oauth_user.access_token_expiration = datetime.fromtimestamp(expires_at, UTC)
        return oauth_user


class AuthlibOAuth1Provider(_AuthlibProvider):
    """OAuth 1.0a provider: request-token/verifier exchange, then a signed userinfo call."""

    @property
    def protocol(self) -> str:
        return OAUTH1

    async def exchange_request_token(
        self, request_token: OAuth1RequestToken, verifier: str
    ) -> OAuth1AccessToken:
        async with AsyncOAuth1Client(
            client_id=self._config.client_id,
            client_secret=self._config.client_secret,
            token=request_token.token,
            token_secret=request_token.token_secret,
            timeout=HTTP_TIMEOUT,
        ) as client:
            try:
                token = await client.fetch_access_token(self._config.token_url, verifier=verifier)
                return OAuth1AccessToken(
                    token=token["oauth_token"], token_secret=token["oauth_token_secret"]
                )
            except (AuthlibBaseError, httpx.HTTPError, KeyError, ValueError) as e:
                logger.warning("%s access token exchange failed: %s", self._id, e)
                raise TokenExchangeError(f"{self._id} rejected the request token") from e

    async def fetch_user(self, state: OAuthStateToken, redirect_uri: str) -> OAuthUser:
        access_token = state.oauth1_access_token
        if access_token is None:
            raise TokenExchangeError(f"No access token for {self._id}")

        async with AsyncOAuth1Client(
            client_id=self._config.client_id,
            client_secret=self._config.client_secret,
            token=access_token.token,
            token_secret=access_token.token_secret,
            timeout=HTTP_TIMEOUT,
        ) as client:
            data = await self._get_json(client, self._config.userinfo_url)

        if not isinstance(data, dict):
            raise FetchUserError(f"Unexpected {self._id} userinfo response")
        oauth_user = profile_from_userinfo(self._id, data)
        oauth_user.access_token = access_token.token
        oauth_user.oauth1_access_token_secret = access_token.token_secret
        return oauth_user
