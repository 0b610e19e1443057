"""Sign-up service: completes a sign-up and converts it into a user and session."""

import logging
from datetime import UTC, datetime

from fedauth.config import InstanceConfig, SessionConfig, SignUpConfig
from fedauth.domain.auth.error import (
    IdentificationClaimed,
    IdentificationExists,
    SessionCreationNotAllowed,
)
from fedauth.domain.auth.event.events import UserCreated
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.external_account import ExternalAccount
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.sign_up import SignUp
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import IdentificationStatus, SessionStatus, SignUpId
from fedauth.domain.auth.port.repository import (
    IdentificationRepository,
    SignUpRepository,
    UserRepository,
    VerificationRepository,
)
from fedauth.domain.auth.service.client import ClientService
from fedauth.domain.auth.service.identification import IdentificationService
from fedauth.domain.auth.service.restriction import RestrictionService
from fedauth.domain.auth.service.session import SessionService
from fedauth.domain.shared.error import UniqueIdentificationViolation
from fedauth.domain.shared.outbox import Outbox
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


def unique_verified_identifications(idents: list[Identification]) -> list[Identification]:
    """Collapse identifications sharing ``(identifier, type)`` into one.

    The last one seen wins. Identifications without an identifier (OAuth
    and SAML links) are kept, keyed by id.
    """
    unique: dict[str, Identification] = {}
    for ident in idents:
        if not ident.is_verified():
            continue
        key = f"{ident.identifier}{ident.type}" if ident.identifier else str(ident.id)
        unique[key] = ident
    return list(unique.values())


class SignUpService(Service):
    _sign_up_repo: SignUpRepository
    _identification_repo: IdentificationRepository
    _verification_repo: VerificationRepository
    _user_repo: UserRepository
    _session_service: SessionService
    _identification_service: IdentificationService
    _restriction_service: RestrictionService
    _client_service: ClientService
    _outbox: Outbox
    _config: SignUpConfig
    _session_config: SessionConfig
    _instance: InstanceConfig

    async def get(self, sign_up_id: SignUpId) -> SignUp | None:
        return await self._sign_up_repo.get(sign_up_id)

    async def save(self, sign_up: SignUp) -> None:
        sign_up.updated_at = datetime.now(UTC)
        await self._sign_up_repo.save(sign_up)

    async def finalize_flow(
        self,
        sign_up: SignUp,
        client: Client,
        external_account: ExternalAccount | None,
        rotating_token_nonce: str | None = None,
    ) -> Session | None:
        """Complete the sign-up if nothing is missing.

        Returns the pending session of the new user, or None when the
        sign-up still has missing requirements and stays open.

        Raises:
            IdentifierNotAllowedAccess: If an identification is restricted
            IdentificationClaimed: If an identification was claimed meanwhile
        """
        if external_account is not None:
            await self._update_from_external_account(sign_up, external_account)

        await self._check_restrictions(sign_up)
        await self._check_identifications_not_claimed(sign_up)

        missing = sign_up.missing_fields()
        if missing:
            logger.debug("Sign-up %s missing fields: %s", sign_up.id, missing)
            return None

        return await self._convert_to_user(sign_up, client, external_account, rotating_token_nonce)

    async def _update_from_external_account(
        self, sign_up: SignUp, external_account: ExternalAccount
    ) -> None:
        if sign_up.successful_external_account_identification_id is not None and sign_up.email_address_id is None:
            ext_ident = await self._identification_repo.get(
                sign_up.successful_external_account_identification_id
            )
            if ext_ident is not None and ext_ident.target_identification_id is not None:
                target = await self._identification_repo.get(ext_ident.target_identification_id)
                if target is not None and target.is_email_address():
                    sign_up.email_address_id = target.id

        if self._config.progressive:
            if not sign_up.first_name and external_account.first_name:
                sign_up.first_name = external_account.first_name
            if not sign_up.last_name and external_account.last_name:
                sign_up.last_name = external_account.last_name
        else:
            sign_up.first_name = sign_up.first_name or external_account.first_name
            sign_up.last_name = sign_up.last_name or external_account.last_name

        if not sign_up.username and external_account.username:
            sign_up.username = external_account.username

        await self.save(sign_up)

    async def _check_restrictions(self, sign_up: SignUp) -> None:
        for ident in await self._identification_repo.list_by_ids(sign_up.identification_ids()):
            if ident.is_email_address() and ident.identifier:
                await self._restriction_service.check(ident.identifier)

    async def _check_identifications_not_claimed(self, sign_up: SignUp) -> None:
        for ident in await self._verified_with_linked(sign_up):
            if ident.user_id is not None:
                logger.info("Identification %s already claimed by %s", ident.id, ident.user_id)
                raise IdentificationClaimed()

    async def _verified_with_linked(self, sign_up: SignUp) -> list[Identification]:
        idents = await self._identification_repo.list_by_ids(sign_up.identification_ids())
        target_ids = [
            i.target_identification_id
            for i in idents
            if i.target_identification_id is not None
            and i.target_identification_id not in sign_up.identification_ids()
        ]
        if target_ids:
            idents.extend(await self._identification_repo.list_by_ids(target_ids))
        return [i for i in idents if i.is_verified()]

    async def _convert_to_user(
        self,
        sign_up: SignUp,
        client: Client,
        external_account: ExternalAccount | None,
        rotating_token_nonce: str | None,
    ) -> Session:
        current_sessions = await self._session_service.list_current_by_client(client.id)
        now = datetime.now(UTC)

        if self._session_config.single_session_mode:
            await self._session_service.remove_all(current_sessions)
            client.sign_in_id = None
        elif any(s.is_active(now) and s.has_actor() for s in current_sessions):
            raise SessionCreationNotAllowed()

        user = User.create(
            self._instance.id,
            first_name=sign_up.first_name,
            last_name=sign_up.last_name,
            username=sign_up.username,
            avatar_url=external_account.avatar_url if external_account and external_account.avatar_url else None,
        )
        await self._user_repo.save(user)

        await self._identification_service.finalize_reverify_flow(user.id)

        session = await self._session_service.create(
            user, client.id, status=SessionStatus.PENDING_ACTIVATION
        )

        sign_up.created_user_id = user.id
        sign_up.created_session_id = session.id
        await self.save(sign_up)

        verified = unique_verified_identifications(await self._verified_with_linked(sign_up))
        for ident in verified:
            if ident.is_email_address() and user.primary_email_address_id is None:
                user.primary_email_address_id = ident.id
            ident.user_id = user.id
            try:
                await self._identification_repo.save(ident)
            except UniqueIdentificationViolation as e:
                raise IdentificationExists() from e

            if ident.verification_id is not None:
                verification = await self._verification_repo.get(ident.verification_id)
                if verification is not None and verification.identification_id != ident.id:
                    verification.identification_id = ident.id
                    await self._verification_repo.save(verification)

        has_contact_info_verified = any(i.is_email_address() for i in verified)
        unverified_ids = [i for i in [sign_up.email_address_id] if i is not None]
        for ident in await self._identification_repo.list_by_ids(unverified_ids):
            if ident.is_verified():
                continue
            ident.user_id = user.id
            if self._config.progressive and not has_contact_info_verified:
                ident.status = IdentificationStatus.RESERVED
                if ident.is_email_address() and user.primary_email_address_id is None:
                    user.primary_email_address_id = ident.id
            await self._identification_repo.save(ident)

        await self._user_repo.save(user)

        client.sign_up_id = None
        if rotating_token_nonce is not None:
            client.rotating_token_nonce = rotating_token_nonce
        client.rotate_token()
        await self._client_service.save(client)

        await self._outbox.append(UserCreated(user_id=str(user.id)))
        logger.info(
            "Sign-up converted: sign_up_id=%s, user_id=%s, session_id=%s",
            sign_up.id,
            user.id,
            session.id,
        )
        return session
