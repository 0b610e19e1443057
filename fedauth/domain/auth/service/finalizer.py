"""Flow finalizer: applies the single outcome of an OAuth callback.

Each ``finish_*`` method runs inside the callback transaction. ApiErrors
raised from here describe valid, persisted outcomes (an account transfer,
an already signed-in client) and the caller commits before reporting
them; anything else is a fault and rolls back.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from fedauth.config import InstanceConfig, SessionConfig
from fedauth.domain.auth.error import (
    AlreadySignedIn,
    ExternalAccountNotFound,
    IdentificationExists,
    InvalidClientState,
    OAuthAccountAlreadyConnected,
    OAuthIdentificationClaimed,
    ResourceNotFound,
)
from fedauth.domain.auth.event.events import UserUpdated
from fedauth.domain.auth.model.account_transfer import AccountTransfer
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.external_account import ExternalAccount, OAuthUser
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.oauth import OAuthStateToken
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.sign_up import SignUp
from fedauth.domain.auth.model.value import (
    ClientId,
    IdentificationId,
    SignInId,
    SignUpId,
    SourceType,
    UserId,
)
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.oauth_provider import OAuthProvider
from fedauth.domain.auth.port.repository import (
    AccountTransferRepository,
    ExternalAccountRepository,
    IdentificationRepository,
    UserRepository,
    VerificationRepository,
)
from fedauth.domain.auth.service.client import ClientService
from fedauth.domain.auth.service.external_account import ExternalAccountService
from fedauth.domain.auth.service.resolver import IdentityResolver
from fedauth.domain.auth.service.restriction import RestrictionService
from fedauth.domain.auth.service.session import SessionService
from fedauth.domain.auth.service.sign_in import SignInService
from fedauth.domain.auth.service.sign_up import SignUpService
from fedauth.domain.shared.outbox import Outbox
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


@dataclass
class FlowOutcome:
    """What a finished flow leaves for the redirect step."""

    client: Client | None = None
    session: Session | None = None


class FlowFinalizer(Service):
    _resolver: IdentityResolver
    _restriction_service: RestrictionService
    _external_account_service: ExternalAccountService
    _sign_in_service: SignInService
    _sign_up_service: SignUpService
    _session_service: SessionService
    _client_service: ClientService
    _identification_repo: IdentificationRepository
    _external_account_repo: ExternalAccountRepository
    _verification_repo: VerificationRepository
    _account_transfer_repo: AccountTransferRepository
    _user_repo: UserRepository
    _outbox: Outbox
    _session_config: SessionConfig
    _instance: InstanceConfig

    async def finish(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        client: Client | None,
        provider: OAuthProvider,
    ) -> FlowOutcome:
        """Dispatch on the flow the verification was started from."""
        match state.source_type:
            case SourceType.SIGN_IN:
                return await self.finish_sign_in(verification, state, oauth_user, client)
            case SourceType.SIGN_UP:
                return await self.finish_sign_up(verification, state, oauth_user, client)
            case SourceType.OAUTH_CONNECT:
                await self.finish_connect(verification, state, oauth_user, provider)
                return FlowOutcome(client=client)
            case SourceType.OAUTH_REAUTHORIZE:
                await self.finish_reauthorize(state, oauth_user)
                return FlowOutcome(client=client)
        raise InvalidClientState(f"Unknown source type {state.source_type}")

    async def finish_sign_in(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        client: Client | None,
    ) -> FlowOutcome:
        """Complete a sign-in, or hand it off to sign-up.

        Exactly one of three things happens: an account transfer is
        created (ExternalAccountNotFound), the first factor is attached and
        a session issued, or the first factor is attached pending an email
        verification step.
        """
        sign_in = await self._sign_in_service.get(SignInId.parse(state.source_id))
        if sign_in is None:
            raise InvalidClientState("No sign_in.")
        client = await self._flow_client(client, sign_in.client_id)

        if oauth_user.email_address_provided():
            await self._restriction_service.check(oauth_user.email_address)

        resolved = await self._resolver.resolve(oauth_user, SourceType.SIGN_IN, client)
        ext_acc_ident = resolved.external_account_identification

        if resolved.user is None:
            if ext_acc_ident is None:
                result = await self._external_account_service.create_and_link(
                    verification, state, oauth_user, None
                )
                ext_acc_ident = result.identification
            else:
                await self._external_account_service.update(state, oauth_user)

            email_ident = resolved.email_identification
            if (
                not oauth_user.email_address_verified
                and email_ident is not None
                and email_ident.user_id is not None
                and client.supports_unverified_email_flow
            ):
                # The email owner must prove ownership before the link is made.
                sign_in.identification_id = email_ident.id
                sign_in.to_link_identification_id = ext_acc_ident.id
                await self._sign_in_service.save(sign_in)
                return FlowOutcome(client=client)

            transfer = await self._create_account_transfer(verification, ext_acc_ident.id)
            logger.info("Sign-in %s has no account, transfer %s created", sign_in.id, transfer.id)
            raise ExternalAccountNotFound(transfer)

        user = resolved.user
        if self._session_config.single_session_mode:
            active = await self._session_service.list_active_by_client(client.id)
            if active:
                same_user = next((s for s in active if s.user_id == user.id), active[0])
                raise AlreadySignedIn(str(same_user.id))

        new_external_account = False
        if ext_acc_ident is None:
            result = await self._external_account_service.create_and_link(
                verification, state, oauth_user, user.id
            )
            ext_acc_ident = result.identification
            new_external_account = result.external_account is not None
        else:
            await self._external_account_service.update(state, oauth_user)
            if ext_acc_ident.user_id is None:
                ext_acc_ident.user_id = user.id
                await self._identification_repo.save(ext_acc_ident)

        sign_in.identification_id = ext_acc_ident.id
        skip_first_factor = True
        if ext_acc_ident.requires_verification:
            if resolved.email_identification is not None:
                sign_in.identification_id = resolved.email_identification.id
            sign_in.to_link_identification_id = ext_acc_ident.id
            skip_first_factor = False

        self._sign_in_service.ensure_user_not_locked(user)
        self._sign_in_service.attach_first_factor_verification(
            sign_in, verification, skip_first_factor=skip_first_factor
        )
        self._sign_in_service.sync_password_reset(sign_in, user)
        await self._sign_in_service.save(sign_in)

        if not self._sign_in_service.is_ready_to_convert(sign_in, user):
            logger.debug("Sign-in %s needs further factors", sign_in.id)
            return FlowOutcome(client=client)

        if new_external_account:
            await self._outbox.append(UserUpdated(user_id=str(user.id)))

        session = await self._sign_in_service.convert_to_session(
            sign_in, client, user, rotating_token_nonce=self._rotating_token_nonce(state)
        )
        return FlowOutcome(client=client, session=session)

    async def finish_sign_up(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        client: Client | None,
    ) -> FlowOutcome:
        """Complete a sign-up, or hand it off to sign-in when the account exists."""
        sign_up = await self._sign_up_service.get(SignUpId.parse(state.source_id))
        if sign_up is None:
            raise InvalidClientState("No sign_up.")
        client = await self._flow_client(client, sign_up.client_id)

        if oauth_user.email_address_provided():
            await self._restriction_service.check(oauth_user.email_address)

        resolved = await self._resolver.resolve(oauth_user, SourceType.SIGN_UP, client)
        ext_acc_ident = resolved.external_account_identification

        if resolved.user is not None:
            user = resolved.user
            self._sign_in_service.ensure_user_not_locked(user)

            if ext_acc_ident is None:
                owner = user.id if oauth_user.email_address_verified else None
                result = await self._external_account_service.create_and_link(
                    verification, state, oauth_user, owner
                )
                ext_acc_ident = result.identification

            for session in await self._session_service.list_active_by_client(client.id):
                if session.user_id == user.id:
                    raise AlreadySignedIn(str(session.id))

            if ext_acc_ident.user_id is not None or resolved.email_identification is None:
                transfer = await self._create_account_transfer(verification, ext_acc_ident.id)
            else:
                transfer = await self._create_account_transfer(
                    verification,
                    resolved.email_identification.id,
                    to_link_identification_id=ext_acc_ident.id,
                )
            logger.info("Sign-up %s matches user %s, transfer %s created", sign_up.id, user.id, transfer.id)
            raise IdentificationExists(transfer)

        external_account: ExternalAccount | None
        if ext_acc_ident is not None:
            external_account = await self._external_account_service.update(state, oauth_user)
        else:
            result = await self._external_account_service.create(
                verification, state, oauth_user, None
            )
            ext_acc_ident = result.identification
            external_account = result.external_account
            if external_account is None:
                external_account = await self._external_account_repo.find_by_identification_id(
                    ext_acc_ident.id
                )

            email_ident = await self._find_verified_sign_up_email(sign_up, oauth_user)
            if email_ident is not None:
                await self._external_account_service.link_identification(
                    ext_acc_ident, email_ident, oauth_user
                )
            else:
                ext_acc_ident = await self._external_account_service.create_or_link_email_identification(
                    ext_acc_ident, state, oauth_user, None
                )

        sign_up.successful_external_account_identification_id = ext_acc_ident.id
        await self._sign_up_service.save(sign_up)

        session = await self._sign_up_service.finalize_flow(
            sign_up, client, external_account, self._rotating_token_nonce(state)
        )
        return FlowOutcome(client=client, session=session)

    async def finish_connect(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        provider: OAuthProvider,
    ) -> None:
        """Attach the provider account to the signed-in user in ``source_id``."""
        user_id = UserId.parse(state.source_id)
        await self._session_service.ensure_user_signed_in(user_id)

        connected = await self._external_account_repo.find_verified_by_user_and_provider(
            user_id, oauth_user.provider_id
        )
        if connected is not None:
            raise OAuthAccountAlreadyConnected()

        if oauth_user.email_address_provided():
            email_ident = await self._identification_repo.find_claimed_email(oauth_user.email_address)
            if email_ident is not None and not email_ident.is_claimable_by(user_id):
                raise OAuthIdentificationClaimed()
            await self._restriction_service.check(
                oauth_user.email_address,
                block_subaddresses=provider.block_email_subaddresses,
            )

        await self._external_account_service.connect(verification, state, oauth_user, user_id)

        user = await self._user_repo.get(user_id)
        if user is None:
            raise ResourceNotFound(f"User {user_id} not found")
        if not user.avatar_url and oauth_user.avatar_url:
            user.avatar_url = oauth_user.avatar_url
            await self._user_repo.save(user)

        await self._outbox.append(UserUpdated(user_id=str(user.id)))
        logger.info("Connected %s to user %s", oauth_user.provider_id, user.id)

    async def finish_reauthorize(self, state: OAuthStateToken, oauth_user: OAuthUser) -> None:
        """Refresh scopes and tokens of the external account in ``source_id``."""
        user = await self._external_account_service.find_user_by_external_account(state.source_id)
        if user is None:
            raise ResourceNotFound("External account not found")
        await self._session_service.ensure_user_signed_in(user.id)
        await self._external_account_service.reauthorize(state, oauth_user, user)

    async def _flow_client(self, client: Client | None, client_id: ClientId) -> Client:
        # The flow object is authoritative: a native flow may call back from another device.
        if client is not None and client.id == client_id:
            return client
        flow_client = await self._client_service.get(client_id)
        if flow_client is None:
            raise InvalidClientState("No client.")
        return flow_client

    async def _create_account_transfer(
        self,
        verification: Verification,
        identification_id: IdentificationId,
        to_link_identification_id: IdentificationId | None = None,
    ) -> AccountTransfer:
        transfer = AccountTransfer.create(
            self._instance.id,
            identification_id,
            timedelta(seconds=self._instance.transactional_ttl_seconds),
            to_link_identification_id=to_link_identification_id,
        )
        await self._account_transfer_repo.save(transfer)
        verification.account_transfer_id = transfer.id
        await self._verification_repo.save(verification)
        return transfer

    async def _find_verified_sign_up_email(
        self, sign_up: SignUp, oauth_user: OAuthUser
    ) -> Identification | None:
        """The sign-up's own email identification, if it is verified and matches the profile."""
        if sign_up.email_address_id is None or not oauth_user.email_address_provided():
            return None
        ident = await self._identification_repo.get(sign_up.email_address_id)
        if ident is None or not ident.is_verified():
            return None
        if ident.identifier != oauth_user.email_address.lower():
            return None
        return ident

    def _rotating_token_nonce(self, state: OAuthStateToken) -> str | None:
        return self._client_service.generate_rotating_token_nonce() if state.is_native() else None
