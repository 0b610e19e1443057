"""OAuth callback command: the protocol orchestration around the flow finalizer."""

import logging
from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import BaseModel

from fedauth.config import Config
from fedauth.domain.auth.error import (
    AccountTransferError,
    ApiError,
    ClientMismatch,
    ExternalAccountNotFound,
    FetchUserError,
    IdentificationClaimed,
    InvalidAuthorization,
    InvalidOAuthCallback,
    NonAuthenticatableOAuthProvider,
    OAuthAccessDenied,
    OAuthFetchUserError,
    OAuthInvalidRedirectURI,
    OAuthTokenExchangeError,
    RedirectURLMismatch,
    StateTokenError,
    StateTokenExpired,
    StateTokenSignatureInvalid,
    TokenExchangeError,
    Unexpected,
    UnsupportedOAuthProvider,
    is_internal,
)
from fedauth.domain.auth.model.client import Client, ClientContext
from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.oauth import OAuthStateToken
from fedauth.domain.auth.model.value import ClientId, VerificationStatus
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.oauth_provider import OAuthProvider, ProviderRegistry
from fedauth.domain.auth.port.repository import (
    OAuth1RequestTokenRepository,
    VerificationRepository,
)
from fedauth.domain.auth.service.client import (
    CREATED_SESSION_ID,
    HANDSHAKE_PARAM,
    ClientService,
    add_query_params,
)
from fedauth.domain.auth.service.finalizer import FlowFinalizer, FlowOutcome
from fedauth.domain.auth.service.saml import SAMLService
from fedauth.domain.auth.service.session import SessionService
from fedauth.domain.auth.service.state_token import StateTokenService
from fedauth.domain.auth.service.verification import VerificationService
from fedauth.domain.shared.command import Command, CommandHandler, Result
from fedauth.domain.shared.error import UniqueIdentificationViolation
from fedauth.domain.shared.uow import UnitOfWork

logger = logging.getLogger(__name__)

REDIRECT_URI_MISMATCH = "redirect_uri_mismatch"


class HandleOAuthCallback(Command):
    """Provider callback parameters, merged from the query string."""

    __public__: ClassVar[bool] = True

    state: str | None = None
    code: str | None = None
    oauth_token: str | None = None
    oauth_verifier: str | None = None
    scope: str | None = None
    error: str | None = None


class ResponseCookie(BaseModel):
    name: str
    value: str
    domain: str | None = None
    http_only: bool = True
    secure: bool = True


class RedirectResult(Result):
    """Where to send the browser, and the cookies to set on the way."""

    redirect_url: str
    status_code: int = 303
    cookies: list[ResponseCookie] = []


@dataclass
class OAuthCallbackHandler(CommandHandler[HandleOAuthCallback, RedirectResult]):
    """Handler for HandleOAuthCallback.

    Until the verification's attempt is consumed, failures are raised and
    rendered as JSON errors. Afterwards every outcome is a redirect: errors
    are stored on the verification for the frontend to read back.
    """

    config: Config
    uow: UnitOfWork
    client_context: ClientContext
    provider_registry: ProviderRegistry
    verification_repo: VerificationRepository
    oauth1_token_repo: OAuth1RequestTokenRepository
    verification_service: VerificationService
    state_token_service: StateTokenService
    saml_service: SAMLService
    finalizer: FlowFinalizer
    client_service: ClientService
    session_service: SessionService

    async def run(self, cmd: HandleOAuthCallback) -> RedirectResult:
        verification, state, provider = await self._load(cmd)

        status = await self.verification_service.consume_attempt(verification)
        await self.uow.commit()

        if status in (VerificationStatus.EXPIRED, VerificationStatus.VERIFIED):
            # Expired: let the caller start over. Verified: replay of a finished flow.
            logger.info("Verification %s already %s, redirecting", verification.id, status)
            return RedirectResult(redirect_url=state.redirect_url)
        if status != VerificationStatus.UNVERIFIED:
            logger.info("Verification %s is %s, rejecting callback", verification.id, status)
            raise InvalidAuthorization()

        try:
            return await self._complete(cmd, verification, state, provider)
        except Exception as e:
            return await self._redirect_with_error(verification, state, e)

    @property
    def client(self) -> Client | None:
        return self.client_context.client

    async def _load(
        self, cmd: HandleOAuthCallback
    ) -> tuple[Verification, OAuthStateToken, OAuthProvider]:
        if not cmd.state:
            raise InvalidAuthorization()

        verification = await self.verification_repo.get_by_nonce(cmd.state)
        if verification is None or not verification.token:
            logger.info("No verification for OAuth state")
            raise InvalidAuthorization()

        provider = self.provider_registry.get(verification.strategy)
        if provider is None:
            raise UnsupportedOAuthProvider()

        if cmd.error == REDIRECT_URI_MISMATCH:
            raise OAuthInvalidRedirectURI()

        state = self._decode_state(verification.token)

        if state.source_type.is_authentication() and not provider.authenticatable:
            raise NonAuthenticatableOAuthProvider()

        self._validate_form(cmd, provider)
        state.scopes_returned = cmd.scope or state.scopes_requested
        return verification, state, provider

    def _decode_state(self, token: str) -> OAuthStateToken:
        try:
            state = self.state_token_service.decode(token)
            self.state_token_service.verify_client(state, self.client, self.config.instance)
        except StateTokenExpired as e:
            logger.warning("OAuth state token expired: %s", e)
            raise InvalidAuthorization() from e
        except (ClientMismatch, StateTokenSignatureInvalid) as e:
            logger.info("OAuth state token rejected: %s", e)
            raise InvalidAuthorization() from e
        except StateTokenError as e:
            logger.exception("OAuth state token could not be decoded")
            raise InvalidAuthorization() from e
        return state

    @staticmethod
    def _validate_form(cmd: HandleOAuthCallback, provider: OAuthProvider) -> None:
        if cmd.error:
            return
        if provider.is_oauth1():
            if not cmd.oauth_token or not cmd.oauth_verifier:
                raise InvalidOAuthCallback(long_message="oauth_token and oauth_verifier are required")
        elif not cmd.code:
            raise InvalidOAuthCallback(long_message="code is required")

    async def _complete(
        self,
        cmd: HandleOAuthCallback,
        verification: Verification,
        state: OAuthStateToken,
        provider: OAuthProvider,
    ) -> RedirectResult:
        if cmd.error:
            logger.info("Provider %s returned error %s", provider.id, cmd.error)
            raise OAuthAccessDenied()
        state.oauth_exchange_code = cmd.code

        oauth_user = await self._fetch_user(cmd, verification, state, provider)

        outcome = FlowOutcome(client=self.client)
        saml_url = await self.saml_service.divert(state, oauth_user)
        if saml_url is not None:
            await self.uow.commit()
        else:
            outcome = await self._finalize(verification, state, oauth_user, provider)

        if outcome.session is not None:
            await self.session_service.activate(outcome.session)
            await self.uow.commit()

        return await self._redirect(state, outcome, saml_url)

    async def _fetch_user(
        self,
        cmd: HandleOAuthCallback,
        verification: Verification,
        state: OAuthStateToken,
        provider: OAuthProvider,
    ) -> OAuthUser:
        try:
            if provider.is_oauth1():
                await self._exchange_request_token(cmd, verification, state, provider)
            oauth_user = await provider.fetch_user(state, self.config.oauth_callback_url)
        except TokenExchangeError as e:
            logger.warning("Token exchange with %s failed: %s", provider.id, e)
            raise OAuthTokenExchangeError() from e
        except FetchUserError as e:
            logger.warning("Fetching user from %s failed: %s", provider.id, e)
            raise OAuthFetchUserError() from e

        oauth_user.email_address = oauth_user.email_address.lower()
        oauth_user.username = oauth_user.username.lower()

        if not oauth_user.email_address_provided() and not self.config.auth.sign_up.progressive:
            logger.warning("Provider %s returned no email address", provider.id)
            raise OAuthFetchUserError(long_message="The provider did not return an email address")

        if (
            oauth_user.email_address_provided()
            and not oauth_user.email_address_verified
            and state.source_type.is_authentication()
            and not await self._flow_supports_unverified_email(state)
        ):
            logger.warning("Provider %s returned an unverified email address", provider.id)
            raise OAuthFetchUserError(long_message="The provider's email address is not verified")

        return oauth_user

    async def _flow_client(self, state: OAuthStateToken) -> Client | None:
        """The client the flow was started from, which a native callback may not carry."""
        client = self.client
        if state.client_id is None or (client is not None and str(client.id) == state.client_id):
            return client
        return await self.client_service.get(ClientId.parse(state.client_id))

    async def _flow_supports_unverified_email(self, state: OAuthStateToken) -> bool:
        client = await self._flow_client(state)
        return client is not None and client.supports_unverified_email_flow

    async def _exchange_request_token(
        self,
        cmd: HandleOAuthCallback,
        verification: Verification,
        state: OAuthStateToken,
        provider: OAuthProvider,
    ) -> None:
        nonce = verification.nonce or ""
        oauth_token = cmd.oauth_token or ""
        request_token = await self.oauth1_token_repo.find(nonce, oauth_token)
        if request_token is None:
            raise TokenExchangeError("OAuth1 request token not found")
        try:
            state.oauth1_access_token = await provider.exchange_request_token(
                request_token, cmd.oauth_verifier or ""
            )
        finally:
            # Single use, whatever the exchange outcome.
            await self.oauth1_token_repo.delete(nonce, oauth_token)
            await self.uow.commit()

    async def _finalize(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        provider: OAuthProvider,
    ) -> FlowOutcome:
        """Run the flow finalizer in one transaction.

        A known ApiError still commits: it describes an outcome (such as an
        account transfer) that must persist. A unique identification
        violation always rolls back.
        """
        try:
            outcome = await self.finalizer.finish(verification, state, oauth_user, self.client, provider)
        except ApiError as e:
            if isinstance(e.__cause__, UniqueIdentificationViolation):
                await self.uow.rollback()
                raise
            await self.uow.commit()
            await self._record_account_transfer(e, state)
            raise
        except UniqueIdentificationViolation as e:
            await self.uow.rollback()
            raise IdentificationClaimed() from e
        except Exception:
            await self.uow.rollback()
            raise

        await self.uow.commit()
        return outcome

    async def _record_account_transfer(self, error: ApiError, state: OAuthStateToken) -> None:
        if not isinstance(error, AccountTransferError) or error.account_transfer is None:
            return

        client = await self._flow_client(state)
        if client is None:
            logger.debug("No client to record account transfer %s on", error.account_transfer.id)
            return

        if isinstance(error, ExternalAccountNotFound):
            await self.client_service.record_account_transfers(client, None, error.account_transfer)
        else:
            await self.client_service.record_account_transfers(client, error.account_transfer, None)
        await self.uow.commit()

    async def _redirect(
        self,
        state: OAuthStateToken,
        outcome: FlowOutcome,
        saml_url: str | None,
    ) -> RedirectResult:
        session = outcome.session
        client = outcome.client

        use_action_complete = session is not None and bool(state.action_complete_redirect_url)
        if use_action_complete:
            redirect_url = state.action_complete_redirect_url or ""
        elif saml_url is not None:
            redirect_url = saml_url
        else:
            redirect_url = state.redirect_url

        if client is not None and state.is_native():
            redirect_url = self.client_service.with_rotating_token_nonce(redirect_url, client)

        if session is None or client is None:
            return RedirectResult(redirect_url=redirect_url)

        if not use_action_complete:
            redirect_url = add_query_params(redirect_url, {CREATED_SESSION_ID: str(session.id)})

        cookie_names = self.client_service.cookie_names
        csrf_token = self.client_service.new_csrf_token()
        cookies = [ResponseCookie(name=cookie_names.csrf, value=csrf_token)]

        sessions = await self.session_service.list_active_by_client(client.id)
        handshake = self.client_service.handshake_token(client, sessions)

        if self.config.instance.is_development_or_staging():
            redirect_url = add_query_params(redirect_url, {HANDSHAKE_PARAM: handshake})
            redirect_url = self.client_service.development_cookie_hop_url(
                client, csrf_token, redirect_url
            )
        else:
            domain = self.client_service.cookie_domain()
            cookies.append(
                ResponseCookie(
                    name=cookie_names.client,
                    value=self.client_service.cookie_value(client),
                    domain=domain,
                )
            )
            cookies.append(ResponseCookie(name=cookie_names.handshake, value=handshake, domain=domain))

        logger.info("OAuth callback created session %s for client %s", session.id, client.id)
        return RedirectResult(redirect_url=redirect_url, status_code=307, cookies=cookies)

    async def _redirect_with_error(
        self,
        verification: Verification,
        state: OAuthStateToken,
        error: Exception,
    ) -> RedirectResult:
        """Store ``error`` on the verification and send the browser back."""
        payload: dict[str, Any]
        if isinstance(error, ApiError) and not is_internal(error):
            logger.info(
                "OAuth callback for verification %s ended with %s", verification.id, error.code
            )
            payload = error.to_payload()
        else:
            logger.exception("OAuth callback failed for verification %s", verification.id)
            payload = Unexpected().to_payload()
            # Kept server side; the public serializer drops it.
            payload["internal_cause"] = f"{type(error).__name__}: {error}"

        await self.uow.rollback()
        stored = await self.verification_repo.get(verification.id) or verification
        stored.error = payload
        await self.verification_repo.save(stored)
        await self.uow.commit()

        redirect_url = state.redirect_url
        client = await self._flow_client(state)
        if client is not None and state.is_native():
            try:
                redirect_url = self.client_service.with_rotating_token_nonce(redirect_url, client)
            except RedirectURLMismatch:
                logger.info("Returning to %s without the rotating token nonce", redirect_url)
        return RedirectResult(redirect_url=redirect_url)
