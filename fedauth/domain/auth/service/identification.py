"""Identification lifecycle: verification of reserved identifiers, re-verify flow, deletion."""

import logging

from fedauth.config import SignUpConfig
from fedauth.domain.auth.error import (
    ExternalAccountEmailAddressVerificationRequired,
    LastIdentificationDeletion,
    ResourceNotFound,
)
from fedauth.domain.auth.event.events import UserUpdated
from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.sign_in import SignIn
from fedauth.domain.auth.model.value import IdentificationId, UserId
from fedauth.domain.auth.port.repository import (
    IdentificationRepository,
    UserRepository,
    VerificationRepository,
)
from fedauth.domain.auth.service.session import SessionService
from fedauth.domain.shared.outbox import Outbox
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


class IdentificationService(Service):
    _identification_repo: IdentificationRepository
    _verification_repo: VerificationRepository
    _user_repo: UserRepository
    _session_service: SessionService
    _outbox: Outbox
    _sign_up_config: SignUpConfig

    async def initiate_reverify_flow(
        self,
        oauth_user: OAuthUser,
        ext_acc_ident: Identification,
        email_ident: Identification,
    ) -> None:
        """Mark an OAuth identification as pending an email-ownership step.

        Applies when neither the provider nor the local store vouches for the
        email. The flag starts as False so the rightful email owner can still
        complete the current flow; finalize_reverify_flow flips it once the
        email is verified.
        """
        if not ext_acc_ident.is_oauth():
            return
        if oauth_user.email_address_verified or email_ident.is_verified():
            return
        ext_acc_ident.requires_verification = False
        await self._identification_repo.save(ext_acc_ident)

    async def finalize_reverify_flow(self, user_id: UserId) -> None:
        """Require re-verification of OAuth links whose target email got verified.

        Every session of the user is revoked when any link is flagged, since
        whoever connected the OAuth account never proved ownership of the
        email it vouches for.
        """
        idents = await self._identification_repo.list_by_user(user_id)
        by_id = {i.id: i for i in idents}
        needs_revoke = False

        for ident in idents:
            if ident.requires_verification is not False or not ident.is_oauth():
                continue
            target = by_id.get(ident.target_identification_id) if ident.target_identification_id else None
            if target is None or not target.is_verified():
                continue

            ident.requires_verification = True
            await self._identification_repo.save(ident)

            if ident.verification_id is not None:
                verification = await self._verification_repo.get(ident.verification_id)
                if verification is not None:
                    verification.error = ExternalAccountEmailAddressVerificationRequired().to_payload()
                    await self._verification_repo.save(verification)
            needs_revoke = True

        if needs_revoke:
            await self._session_service.revoke_all_for_user(user_id)

    async def verify_reserved_for_sign_in(self, sign_in: SignIn) -> None:
        """Verify the first-factor identification if it was only reserved.

        Signing in with a strategy that proves ownership of the identifier
        (an OAuth account vouching for it) upgrades a reserved identification
        left behind by a progressive sign-up.
        """
        if sign_in.first_factor_success_verification_id is None or not self._sign_up_config.progressive:
            return

        verification = await self._verification_repo.get(sign_in.first_factor_success_verification_id)
        if verification is None or verification.identification_id is None:
            return

        ident = await self._identification_repo.get(verification.identification_id)
        if ident is None or not ident.is_reserved():
            return

        ident.verify()
        ident.verification_id = verification.id
        await self._identification_repo.save(ident)
        logger.debug("Verified reserved identification %s on sign-in %s", ident.id, sign_in.id)

    async def delete(self, user_id: UserId, identification_id: IdentificationId) -> None:
        """Delete one of the user's identifications.

        The user row is locked first so two concurrent deletions cannot both
        pass the last-identification check.

        Raises:
            ResourceNotFound: If the user or the identification does not exist
            LastIdentificationDeletion: If it is the user's only identification
        """
        user = await self._user_repo.get_for_update(user_id)
        if user is None:
            raise ResourceNotFound()

        idents = await self._identification_repo.list_by_user(user_id)
        ident = next((i for i in idents if i.id == identification_id), None)
        if ident is None:
            raise ResourceNotFound()
        if len(idents) <= 1:
            raise LastIdentificationDeletion()

        for linked in await self._identification_repo.list_linked_to(ident.id):
            linked.target_identification_id = None
            await self._identification_repo.save(linked)

        await self._identification_repo.delete(ident.id)

        if user.primary_email_address_id == ident.id:
            user.primary_email_address_id = next(
                (i.id for i in idents if i.id != ident.id and i.is_email_address() and i.is_verified()),
                None,
            )
            await self._user_repo.save(user)

        await self._outbox.append(UserUpdated(user_id=str(user_id)))
        logger.info("Identification deleted: identification_id=%s, user_id=%s", ident.id, user_id)
