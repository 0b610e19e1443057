"""DI provider for auth domain."""

import logging

from dishka import from_context, provide
from starlette.requests import Request

from fedauth.config import (
    Config,
    CookieConfig,
    InstanceConfig,
    JwtConfig,
    LockoutConfig,
    RestrictionsConfig,
    SAMLConfig,
    SessionConfig,
    SignUpConfig,
)
from fedauth.domain.auth.command.delete_identification import DeleteIdentificationHandler
from fedauth.domain.auth.command.oauth_callback import OAuthCallbackHandler
from fedauth.domain.auth.command.set_client_cookie import SetClientCookieHandler
from fedauth.domain.auth.error import SignedOut
from fedauth.domain.auth.model.client import ClientContext
from fedauth.domain.auth.model.value import CurrentUser
from fedauth.domain.auth.service.client import ClientService
from fedauth.domain.auth.service.external_account import ExternalAccountService
from fedauth.domain.auth.service.finalizer import FlowFinalizer
from fedauth.domain.auth.service.identification import IdentificationService
from fedauth.domain.auth.service.resolver import IdentityResolver
from fedauth.domain.auth.service.restriction import RestrictionService
from fedauth.domain.auth.service.saml import SAMLService
from fedauth.domain.auth.service.session import SessionService
from fedauth.domain.auth.service.sign_in import SignInService
from fedauth.domain.auth.service.sign_up import SignUpService
from fedauth.domain.auth.service.state_token import StateTokenService
from fedauth.domain.auth.service.verification import VerificationService
from fedauth.util.di.base import Provider
from fedauth.util.di.scope import Scope

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
SESSION_ID_PARAM = "_clerk_session_id"


class AuthProvider(Provider):
    """DI provider for auth domain services and handlers."""

    request = from_context(provides=Request, scope=Scope.UOW)

    # Command Handlers
    oauth_callback_handler = provide(OAuthCallbackHandler, scope=Scope.UOW)
    set_client_cookie_handler = provide(SetClientCookieHandler, scope=Scope.UOW)
    delete_identification_handler = provide(DeleteIdentificationHandler, scope=Scope.UOW)

    # Services
    state_token_service = provide(StateTokenService, scope=Scope.UOW)
    verification_service = provide(VerificationService, scope=Scope.UOW)
    identity_resolver = provide(IdentityResolver, scope=Scope.UOW)
    restriction_service = provide(RestrictionService, scope=Scope.UOW)
    session_service = provide(SessionService, scope=Scope.UOW)
    client_service = provide(ClientService, scope=Scope.UOW)
    identification_service = provide(IdentificationService, scope=Scope.UOW)
    external_account_service = provide(ExternalAccountService, scope=Scope.UOW)
    sign_in_service = provide(SignInService, scope=Scope.UOW)
    sign_up_service = provide(SignUpService, scope=Scope.UOW)
    saml_service = provide(SAMLService, scope=Scope.UOW)
    flow_finalizer = provide(FlowFinalizer, scope=Scope.UOW)

    # Config sections
    @provide(scope=Scope.APP)
    def get_instance_config(self, config: Config) -> InstanceConfig:
        return config.instance

    @provide(scope=Scope.APP)
    def get_jwt_config(self, config: Config) -> JwtConfig:
        return config.auth.jwt

    @provide(scope=Scope.APP)
    def get_session_config(self, config: Config) -> SessionConfig:
        return config.auth.session

    @provide(scope=Scope.APP)
    def get_sign_up_config(self, config: Config) -> SignUpConfig:
        return config.auth.sign_up

    @provide(scope=Scope.APP)
    def get_restrictions_config(self, config: Config) -> RestrictionsConfig:
        return config.auth.restrictions

    @provide(scope=Scope.APP)
    def get_lockout_config(self, config: Config) -> LockoutConfig:
        return config.auth.lockout

    @provide(scope=Scope.APP)
    def get_saml_config(self, config: Config) -> SAMLConfig:
        return config.auth.saml

    @provide(scope=Scope.APP)
    def get_cookie_config(self, config: Config) -> CookieConfig:
        return config.auth.cookies

    @provide(scope=Scope.UOW)
    async def get_client_context(
        self,
        request: Request,
        client_service: ClientService,
        cookies: CookieConfig,
    ) -> ClientContext:
        """Resolve the requesting client from its cookie, or a Bearer token for native apps.

        An unknown or stale token yields an empty context rather than an
        error: the OAuth callback decides whether a client is required.
        """
        token = request.cookies.get(cookies.client)
        if not token:
            auth_header = request.headers.get("Authorization")
            if auth_header and auth_header.startswith(BEARER_PREFIX):
                token = auth_header[len(BEARER_PREFIX):]

        if not token:
            return ClientContext()

        client = await client_service.from_token(token)
        if client is None:
            logger.debug("Client token did not resolve to a client")
        return ClientContext(client=client)

    @provide(scope=Scope.UOW)
    async def get_current_user(
        self,
        request: Request,
        client_context: ClientContext,
        session_service: SessionService,
    ) -> CurrentUser:
        """The user of the client's selected active session.

        Raises:
            SignedOut: If the client has no active session
        """
        client = client_context.client
        if client is None:
            raise SignedOut()

        sessions = await session_service.list_active_by_client(client.id)
        requested = request.query_params.get(SESSION_ID_PARAM)
        if requested:
            sessions = [s for s in sessions if str(s.id) == requested]
        if not sessions:
            raise SignedOut()

        session = max(sessions, key=lambda s: s.touched_at)
        return CurrentUser(user_id=session.user_id, session_id=session.id)
