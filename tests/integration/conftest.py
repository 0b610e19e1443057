"""Fixtures running the OAuth callback through the real container on in-memory SQLite.

Only the outbound HTTP adapters are replaced: the provider registry hands
out a provider returning a fixed profile, and no email domain is
disposable. Everything else (services, repositories, unit of work, outbox)
is what the application wires in production.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import AsyncIterator

import pytest_asyncio
from dishka import AsyncContainer, make_async_container, provide
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.requests import Request

from fedauth.config import (
    AuthConfig,
    Config,
    DatabaseConfig,
    EnvironmentType,
    InstanceConfig,
    JwtConfig,
    SessionConfig,
)
from fedauth.domain.auth.command.oauth_callback import (
    HandleOAuthCallback,
    OAuthCallbackHandler,
    RedirectResult,
)
from fedauth.domain.auth.error import TokenExchangeError
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.oauth import (
    OAuth1AccessToken,
    OAuth1RequestToken,
    OAuthStateToken,
)
from fedauth.domain.auth.model.sign_in import SignIn
from fedauth.domain.auth.model.value import SignInId, SourceType
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.disposable_email import DisposableEmailChecker
from fedauth.domain.auth.port.oauth_provider import OAUTH2, OAuthProvider, ProviderRegistry
from fedauth.domain.auth.port.repository import (
    ClientRepository,
    SignInRepository,
    VerificationRepository,
)
from fedauth.domain.auth.service.client import ClientService
from fedauth.domain.auth.service.state_token import StateTokenService
from fedauth.domain.auth.util.di import AuthProvider
from fedauth.infrastructure.event.di import EventProvider
from fedauth.infrastructure.persistence import PersistenceProvider
from fedauth.infrastructure.persistence.tables import metadata
from fedauth.util.di.base import Provider
from fedauth.util.di.scope import Scope

INSTANCE = "ins_integration"
SIGNING_KEY = "integration-signing-key-32-bytes!"
REDIRECT_URL = "https://app.example.com/sso-callback"
ACTION_COMPLETE_URL = "https://app.example.com/dashboard"


class StaticOAuthProvider(OAuthProvider):
    """OAuth 2.0 provider whose token exchange always yields ``profile``."""

    def __init__(self, profile: OAuthUser) -> None:
        self.profile = profile

    @property
    def id(self) -> str:
        return self.profile.provider_id

    @property
    def protocol(self) -> str:
        return OAUTH2

    @property
    def authenticatable(self) -> bool:
        return True

    @property
    def block_email_subaddresses(self) -> bool:
        return False

    async def exchange_request_token(
        self, request_token: OAuth1RequestToken, verifier: str
    ) -> OAuth1AccessToken:
        raise TokenExchangeError("OAuth 1.0a is not supported by this provider")

    async def fetch_user(self, state: OAuthStateToken, redirect_uri: str) -> OAuthUser:
        return self.profile.model_copy()


class StaticProviderRegistry(ProviderRegistry):
    def __init__(self, provider: OAuthProvider) -> None:
        self._provider = provider

    def get(self, provider_id: str) -> OAuthProvider | None:
        return self._provider if provider_id == self._provider.id else None

    def available_providers(self) -> list[str]:
        return [self._provider.id]


class NoDisposableDomains(DisposableEmailChecker):
    async def is_disposable(self, domain: str) -> bool:
        return False


class StaticOAuthInfraProvider(Provider):
    """Stands in for OAuthInfraProvider without any outbound HTTP."""

    def __init__(self, oauth_provider: StaticOAuthProvider) -> None:
        super().__init__()
        self._oauth_provider = oauth_provider

    @provide(scope=Scope.APP)
    def get_provider_registry(self) -> ProviderRegistry:
        return StaticProviderRegistry(self._oauth_provider)

    @provide(scope=Scope.APP)
    def get_disposable_email_checker(self) -> DisposableEmailChecker:
        return NoDisposableDomains()


class CallbackEnv:
    """A container plus helpers to seed a sign-in and call back into it."""

    instance_id = INSTANCE
    redirect_url = REDIRECT_URL
    action_complete_redirect_url = ACTION_COMPLETE_URL

    def __init__(
        self, container: AsyncContainer, config: Config, oauth_provider: StaticOAuthProvider
    ) -> None:
        self.container = container
        self.config = config
        self.oauth_provider = oauth_provider

    @asynccontextmanager
    async def uow(self, client_token: str | None = None) -> AsyncIterator[AsyncContainer]:
        """Enter one unit of work, as the middleware does for a request."""
        headers = []
        if client_token:
            cookie = f"{self.config.auth.cookies.client}={client_token}"
            headers.append((b"cookie", cookie.encode()))
        request = Request(
            {
                "type": "http",
                "method": "GET",
                "path": "/v1/oauth_callback",
                "query_string": b"",
                "headers": headers,
            }
        )
        async with self.container({Request: request}, scope=Scope.UOW) as uow_container:
            yield uow_container

    async def create_client(self) -> tuple[Client, str]:
        """Persist a new client and return it with its cookie value."""
        async with self.uow() as c:
            client = Client.create(INSTANCE)
            await (await c.get(ClientRepository)).save(client)
            token = (await c.get(ClientService)).cookie_value(client)
        return client, token

    async def start_sign_in(self, client: Client) -> str:
        """Persist a sign-in and its OAuth verification; return the state nonce."""
        now = datetime.now(UTC)
        nonce = f"state-{SignInId.generate()}"
        async with self.uow() as c:
            sign_in = SignIn(
                id=SignInId.generate(),
                instance_id=INSTANCE,
                client_id=client.id,
                abandon_at=now + timedelta(days=1),
                created_at=now,
            )
            await (await c.get(SignInRepository)).save(sign_in)

            state = OAuthStateToken(
                source_type=SourceType.SIGN_IN,
                source_id=str(sign_in.id),
                oauth_provider=self.oauth_provider.id,
                client_id=str(client.id),
                scopes_requested="email profile",
                redirect_url=REDIRECT_URL,
                action_complete_redirect_url=ACTION_COMPLETE_URL,
            )
            state_tokens = await c.get(StateTokenService)
            verification = Verification.create(
                INSTANCE,
                self.oauth_provider.id,
                nonce=nonce,
                token=state_tokens.encode(state, timedelta(minutes=10)),
                ttl=timedelta(minutes=10),
            )
            await (await c.get(VerificationRepository)).save(verification)
        return nonce

    async def callback(self, client_token: str | None, **params: str) -> RedirectResult:
        async with self.uow(client_token) as c:
            handler = await c.get(OAuthCallbackHandler)
            return await handler.run(HandleOAuthCallback(**params))


@pytest_asyncio.fixture
async def make_env():
    """Factory for a CallbackEnv backed by a fresh in-memory database."""
    containers: list[AsyncContainer] = []

    async def factory(
        profile: OAuthUser,
        *,
        environment: EnvironmentType = EnvironmentType.PRODUCTION,
        single_session_mode: bool = False,
    ) -> CallbackEnv:
        config = Config(
            database=DatabaseConfig(url="sqlite+aiosqlite:///:memory:", auto_migrate=False),
            instance=InstanceConfig(
                id=INSTANCE,
                environment=environment,
                domain="example.com",
                fapi_url="https://clerk.example.com",
            ),
            auth=AuthConfig(
                jwt=JwtConfig(signing_key=SIGNING_KEY),
                session=SessionConfig(single_session_mode=single_session_mode),
            ),
        )
        oauth_provider = StaticOAuthProvider(profile)
        container = make_async_container(
            PersistenceProvider(),
            EventProvider(),
            AuthProvider(),
            StaticOAuthInfraProvider(oauth_provider),
            context={Config: config},
            scopes=Scope,  # type: ignore[arg-type]
        )
        containers.append(container)

        engine = await container.get(AsyncEngine)
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        return CallbackEnv(container, config, oauth_provider)

    yield factory

    for container in containers:
        await container.close()
