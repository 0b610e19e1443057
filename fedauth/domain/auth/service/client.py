"""Client service: client cookies, CSRF, handshake and redirect targets."""

import logging
import secrets
from datetime import UTC, datetime
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlparse, urlunparse

import jwt

from fedauth.config import CookieConfig, InstanceConfig, JwtConfig
from fedauth.domain.auth.error import RedirectURLMismatch
from fedauth.domain.auth.model.account_transfer import AccountTransfer
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.value import ClientId
from fedauth.domain.auth.port.repository import ClientRepository
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)

# Query parameters of the development cookie hop.
SET_COOKIE_CLIENT_ID = "_set_cookie_client_id"
SET_COOKIE_SUBDOMAIN = "_set_cookie_subdomain"
CSRF_TOKEN = "_csrf_token"
FINAL_REDIRECT_URL = "_final_redirect_url"
RET_OBJ = "__clerk_ret_obj"
ROTATING_TOKEN_NONCE = "rotating_token_nonce"
CREATED_SESSION_ID = "created_session_id"
HANDSHAKE_PARAM = "__clerk_handshake"


def add_query_params(url: str, params: dict[str, str]) -> str:
    """Append ``params`` to ``url`` keeping its existing query."""
    parsed = urlparse(url)
    query = parse_qsl(parsed.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunparse(parsed._replace(query=urlencode(query)))


class ClientService(Service):
    """Client-bound tokens and the redirects that carry them.

    - The client cookie is a JWT over ``{id, rotating_token}`` signed with the
      instance key; rotating the token invalidates every older cookie
    - CSRF tokens are random and double-submitted (cookie + query param)
    - Handshake tokens carry the client cookie to the application domain
    """

    _client_repo: ClientRepository
    _jwt: JwtConfig
    _cookies: CookieConfig
    _instance: InstanceConfig

    async def get(self, client_id: ClientId) -> Client | None:
        return await self._client_repo.get(client_id)

    async def save(self, client: Client) -> None:
        client.updated_at = datetime.now(UTC)
        await self._client_repo.save(client)

    def cookie_value(self, client: Client) -> str:
        payload = {"id": str(client.id), "rotating_token": client.rotating_token}
        return jwt.encode(payload, self._jwt.signing_key, algorithm=self._jwt.algorithm)

    async def from_token(self, token: str) -> Client | None:
        """Resolve a client cookie (or Bearer token) to its client.

        Returns None for a malformed token or a stale rotating token.
        """
        try:
            payload = jwt.decode(token, self._jwt.public_key, algorithms=[self._jwt.algorithm])
            client_id = ClientId.parse(payload["id"])
        except (jwt.InvalidTokenError, KeyError, ValueError):
            logger.debug("Ignoring unparseable client token")
            return None

        client = await self._client_repo.get(client_id)
        if client is None or not secrets.compare_digest(
            client.rotating_token, str(payload.get("rotating_token", ""))
        ):
            return None
        return client

    @staticmethod
    def new_csrf_token() -> str:
        return secrets.token_urlsafe(24)

    @staticmethod
    def csrf_matches(expected: str | None, given: str | None) -> bool:
        if not expected or not given:
            return False
        return secrets.compare_digest(expected, given)

    @staticmethod
    def generate_rotating_token_nonce() -> str:
        return secrets.token_urlsafe(32)

    def handshake_token(self, client: Client, sessions: list[Session]) -> str:
        """Signed payload the application domain exchanges for its own cookies."""
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "client_id": str(client.id),
            "client_cookie": self.cookie_value(client),
            "session_ids": [str(s.id) for s in sessions],
            "iat": int(now.timestamp()),
            "exp": int(now.timestamp()) + 60,
        }
        return jwt.encode(payload, self._jwt.signing_key, algorithm=self._jwt.algorithm)

    def is_redirect_allowed(self, url: str) -> bool:
        if self._instance.is_development_or_staging():
            return True
        return url in self._instance.allowed_redirect_urls

    def with_rotating_token_nonce(self, url: str, client: Client) -> str:
        """Append the client's rotating token nonce to a native redirect.

        Raises:
            RedirectURLMismatch: If the URL is not registered for the instance
        """
        if client.rotating_token_nonce is None:
            return url
        if not self.is_redirect_allowed(url):
            logger.warning("Redirect URL not allowed for rotating nonce: %s", url)
            raise RedirectURLMismatch(url)
        return add_query_params(url, {ROTATING_TOKEN_NONCE: client.rotating_token_nonce})

    def development_cookie_hop_url(self, client: Client, csrf_token: str, final_url: str) -> str:
        """URL of the FAPI hop that drops the client cookie before the final redirect."""
        return (
            f"{self._instance.fapi_url}/v1/oauth_callback"
            f"?{SET_COOKIE_CLIENT_ID}={client.id}"
            f"&{SET_COOKIE_SUBDOMAIN}=clerk"
            f"&{RET_OBJ}=redirect"
            f"&{CSRF_TOKEN}={csrf_token}"
            f"&{FINAL_REDIRECT_URL}={quote(final_url, safe='')}"
        )

    def cookie_domain(self, subdomain: str | None = None) -> str:
        """Cookie domain for the auth host, optionally under ``subdomain``."""
        domain = self._instance.domain.removeprefix("clerk.")
        return f"{subdomain}.{domain}" if subdomain else domain

    @property
    def cookie_names(self) -> CookieConfig:
        return self._cookies

    async def record_account_transfers(
        self,
        client: Client,
        to_sign_in: AccountTransfer | None,
        to_sign_up: AccountTransfer | None,
    ) -> None:
        """Point the client at the transfer that continues the flow."""
        if to_sign_in is None and to_sign_up is None:
            return
        if to_sign_in is not None:
            client.to_sign_in_account_transfer_id = to_sign_in.id
        if to_sign_up is not None:
            client.to_sign_up_account_transfer_id = to_sign_up.id
        await self.save(client)
