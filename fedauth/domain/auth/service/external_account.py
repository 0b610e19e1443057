"""External account service: creates, links and refreshes provider-backed identifications."""

import logging
from dataclasses import dataclass

from fedauth.config import InstanceConfig
from fedauth.domain.auth.error import ResourceNotFound
from fedauth.domain.auth.event.events import UserUpdated
from fedauth.domain.auth.model.external_account import ExternalAccount, OAuthUser
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.oauth import OAuthStateToken
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import (
    EMAIL_ADDRESS,
    ExternalAccountId,
    IdentificationStatus,
    SourceType,
    UserId,
)
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.repository import (
    ExternalAccountRepository,
    IdentificationRepository,
    UserRepository,
    VerificationRepository,
)
from fedauth.domain.auth.service.identification import IdentificationService
from fedauth.domain.shared.error import NotFoundError
from fedauth.domain.shared.outbox import Outbox
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


@dataclass
class CreateResult:
    identification: Identification
    # None when an existing claimed identification was reused.
    external_account: ExternalAccount | None = None


class ExternalAccountService(Service):
    """Keeps OAuth identifications, external accounts and their email links in sync.

    - create: insert a verified OAuth identification plus its external account
    - create_and_link: create, then link or create the email identification
    - update: refresh a known external account from a new provider response
    - connect / reauthorize: the signed-in user flows
    """

    _external_account_repo: ExternalAccountRepository
    _identification_repo: IdentificationRepository
    _verification_repo: VerificationRepository
    _user_repo: UserRepository
    _identification_service: IdentificationService
    _outbox: Outbox
    _instance: InstanceConfig

    async def create(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        user_id: UserId | None,
    ) -> CreateResult:
        """Insert the OAuth identification and external account for a profile.

        Returns the latest claimed identification unchanged if the provider
        account is already known.
        """
        existing = await self._identification_repo.find_latest_claimed_by_provider_user_id(
            oauth_user.provider_id, oauth_user.provider_user_id
        )
        if existing is not None:
            return CreateResult(identification=existing)

        identification = Identification.create(
            self._instance.id,
            oauth_user.provider_id,
            status=IdentificationStatus.VERIFIED,
            user_id=user_id,
            verification_id=verification.id,
        )
        await self._identification_repo.save(identification)

        account = ExternalAccount.from_oauth_user(
            self._instance.id,
            identification.id,
            oauth_user,
            state.returned_scopes_sorted(),
        )
        await self._external_account_repo.save(account)

        verification.identification_id = identification.id
        await self._verification_repo.save(verification)

        identification.external_account_id = account.id
        await self._identification_repo.save(identification)

        logger.info(
            "External account created: provider=%s, identification_id=%s, user_id=%s",
            oauth_user.provider_id,
            identification.id,
            user_id,
        )
        return CreateResult(identification=identification, external_account=account)

    async def create_and_link(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        user_id: UserId | None,
    ) -> CreateResult:
        result = await self.create(verification, state, oauth_user, user_id)
        result.identification = await self.create_or_link_email_identification(
            result.identification, state, oauth_user, user_id
        )
        if user_id is None:
            return result

        user = await self._user_repo.get(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}", code="user_not_found")
        if await self._update_user_data(user, oauth_user):
            await self._send_user_updated(user)
        return result

    async def create_or_link_email_identification(
        self,
        identification: Identification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        user_id: UserId | None,
    ) -> Identification:
        """Attach the provider email to ``identification`` as its link target.

        The email identification is looked up (claimed by anyone when there
        is no user yet, or owned by the user otherwise) and created when
        missing. A provider-verified email also verifies the local one.
        """
        if not oauth_user.email_address_provided():
            return identification

        if user_id is None:
            email_ident = await self._identification_repo.find_claimed_email(oauth_user.email_address)
        else:
            email_ident = await self._identification_repo.find_by_identifier_and_user(
                oauth_user.email_address, EMAIL_ADDRESS, user_id
            )

        if email_ident is None:
            email_ident = await self._create_email_identification(oauth_user, user_id)

        await self._flag_user_for_password_reset(state, oauth_user, identification, email_ident)
        await self._identification_service.initiate_reverify_flow(
            oauth_user, identification, email_ident
        )

        if oauth_user.email_address_verified and not email_ident.is_verified():
            await self._verify_email_identification(email_ident, oauth_user)

        return await self.link_identification(identification, email_ident, oauth_user)

    async def link_identification(
        self,
        identification: Identification,
        target: Identification,
        oauth_user: OAuthUser,
    ) -> Identification:
        """Point ``identification`` at ``target`` when the link is trustworthy.

        An unverified provider email may only be linked to an identification
        nobody has claimed yet.
        """
        if oauth_user.email_address_verified or not target.is_claimed():
            identification.target_identification_id = target.id
            await self._identification_repo.save(identification)
        return identification

    async def update(self, state: OAuthStateToken, oauth_user: OAuthUser) -> ExternalAccount:
        """Refresh the latest external account for the profile's provider account.

        Raises:
            NotFoundError: If no external account exists for the provider account
        """
        account = await self._external_account_repo.find_latest_by_provider_user_id(
            oauth_user.provider_id, oauth_user.provider_user_id
        )
        if account is None:
            raise NotFoundError(
                f"External account not found for {oauth_user.provider_id}",
                code="external_account_not_found",
            )

        oauth_ident = await self._identification_repo.get(account.identification_id)
        if oauth_ident is None:
            raise NotFoundError(f"Identification not found: {account.identification_id}")

        if not account.email_address and oauth_user.email_address_provided():
            await self.create_or_link_email_identification(
                oauth_ident, state, oauth_user, oauth_ident.user_id
            )

        scopes_changed = account.approved_scopes != state.returned_scopes_sorted()
        account.apply_profile(oauth_user, state.returned_scopes_sorted())
        await self._external_account_repo.save(account)

        # Dangling accounts (left by an abandoned sign-up) have no user yet.
        user = await self._user_repo.get(oauth_ident.user_id) if oauth_ident.user_id else None
        if user is None:
            logger.debug("External account %s has no user to update", account.id)
            return account

        user_updated = await self._update_user_data(user, oauth_user)
        if user_updated or scopes_changed:
            await self._send_user_updated(user)
        return account

    async def connect(
        self,
        verification: Verification,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        user_id: UserId,
    ) -> None:
        """Connect the provider account to a signed-in user.

        Reuses the identification the connect flow reserved on the
        verification, or creates one for the user.
        """
        oauth_ident = None
        account = None
        if verification.identification_id is not None:
            oauth_ident = await self._identification_repo.get(verification.identification_id)
        if oauth_ident is not None and oauth_ident.external_account_id is not None:
            account = await self._external_account_repo.get(oauth_ident.external_account_id)

        if oauth_ident is None or account is None:
            result = await self.create(verification, state, oauth_user, user_id)
            oauth_ident = result.identification
            account = result.external_account or await self._external_account_repo.find_by_identification_id(
                oauth_ident.id
            )
            if account is None:
                raise NotFoundError(f"External account missing for {oauth_ident.id}")

        account.apply_profile(oauth_user, state.returned_scopes_sorted())
        await self._external_account_repo.save(account)

        oauth_ident.user_id = user_id
        oauth_ident.verify()
        await self._identification_repo.save(oauth_ident)

        if oauth_user.email_address_provided() and not oauth_user.email_address_verified:
            target = await self._identification_repo.find_by_identifier_and_user(
                oauth_user.email_address, EMAIL_ADDRESS, user_id
            )
            if target is None:
                target = await self._create_email_identification(oauth_user, user_id)
            oauth_ident.target_identification_id = target.id
            await self._identification_repo.save(oauth_ident)
            return

        await self.create_or_link_email_identification(oauth_ident, state, oauth_user, user_id)

    async def reauthorize(self, state: OAuthStateToken, oauth_user: OAuthUser, user: User) -> None:
        """Store the new scopes and tokens of an already connected account."""
        account = await self._external_account_repo.get(ExternalAccountId.parse(state.source_id))
        if account is None:
            raise ResourceNotFound("External account not found")

        account.approved_scopes = state.returned_scopes_sorted()
        account.access_token = oauth_user.access_token
        account.apply_tokens(oauth_user)
        await self._external_account_repo.save(account)

        ident = await self._identification_repo.get(account.identification_id)
        if ident is None:
            raise NotFoundError(f"Identification not found: {account.identification_id}")
        ident.verify()
        await self._identification_repo.save(ident)

        await self._send_user_updated(user)

    async def find_user_by_external_account(self, external_account_id: str) -> User | None:
        """Owner of an external account, for reauthorization."""
        try:
            account_id = ExternalAccountId.parse(external_account_id)
        except ValueError:
            return None
        account = await self._external_account_repo.get(account_id)
        if account is None:
            return None
        ident = await self._identification_repo.get(account.identification_id)
        if ident is None or ident.user_id is None:
            return None
        return await self._user_repo.get(ident.user_id)

    async def _update_user_data(self, user: User, oauth_user: OAuthUser) -> bool:
        """Fill empty user names from the profile. Never overwrites."""
        changed = False
        if not user.first_name and oauth_user.first_name:
            user.first_name = oauth_user.first_name
            changed = True
        if not user.last_name and oauth_user.last_name:
            user.last_name = oauth_user.last_name
            changed = True
        if changed:
            await self._user_repo.save(user)
        return changed

    async def _create_email_identification(
        self, oauth_user: OAuthUser, user_id: UserId | None
    ) -> Identification:
        verification = Verification.create(
            self._instance.id,
            oauth_user.provider_id,
            attempts=1,
            max_attempts=None,
        )
        await self._verification_repo.save(verification)

        email_ident = Identification.create(
            self._instance.id,
            EMAIL_ADDRESS,
            identifier=oauth_user.email_address,
            status=(
                IdentificationStatus.VERIFIED
                if oauth_user.email_address_verified
                else IdentificationStatus.NOT_SET
            ),
            user_id=user_id,
            verification_id=verification.id,
        )
        await self._identification_repo.save(email_ident)

        verification.identification_id = email_ident.id
        await self._verification_repo.save(verification)
        return email_ident

    async def _verify_email_identification(
        self, email_ident: Identification, oauth_user: OAuthUser
    ) -> None:
        """Verify a local email identification on the provider's word."""
        verification = None
        if not email_ident.is_reserved() and email_ident.verification_id is not None:
            verification = await self._verification_repo.get(email_ident.verification_id)

        if verification is None:
            verification = Verification.create(
                self._instance.id,
                oauth_user.provider_id,
                attempts=1,
                max_attempts=None,
                identification_id=email_ident.id,
            )
        else:
            verification.strategy = oauth_user.provider_id
            verification.attempts += 1
            verification.identification_id = email_ident.id
        await self._verification_repo.save(verification)

        email_ident.verification_id = verification.id
        email_ident.verify()
        await self._identification_repo.save(email_ident)

    async def _flag_user_for_password_reset(
        self,
        state: OAuthStateToken,
        oauth_user: OAuthUser,
        target_ident: Identification,
        email_ident: Identification,
    ) -> None:
        """Force a password reset when a verified provider email takes over an unverified one.

        Whoever set the password never proved they own the address.
        """
        if state.source_type == SourceType.OAUTH_CONNECT or not target_ident.is_oauth():
            return
        if not oauth_user.email_address_verified or email_ident.is_verified():
            return
        if email_ident.user_id is None:
            return

        user = await self._user_repo.get(email_ident.user_id)
        if user is None or not user.password_enabled:
            return
        user.requires_new_password = True
        await self._user_repo.save(user)
        logger.info("User %s flagged for password reset", user.id)

    async def _send_user_updated(self, user: User) -> None:
        await self._outbox.append(UserUpdated(user_id=str(user.id)))
