"""Identity resolver: maps a provider profile onto local identifications."""

import logging
from dataclasses import dataclass

from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import SourceType
from fedauth.domain.auth.port.repository import IdentificationRepository, UserRepository
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


@dataclass
class ResolvedIdentity:
    """Local state matching an external profile.

    Either identification may be missing. ``user`` is set only when the
    trust rules allow the profile to be tied to an existing account.
    """

    external_account_identification: Identification | None
    email_identification: Identification | None
    user: User | None

    @property
    def user_exists(self) -> bool:
        return self.user is not None


class IdentityResolver(Service):
    _identification_repo: IdentificationRepository
    _user_repo: UserRepository

    async def resolve(
        self,
        oauth_user: OAuthUser,
        source_type: SourceType,
        client: Client | None,
    ) -> ResolvedIdentity:
        """Find the external-account and email identifications for a profile.

        An unverified provider email is never trusted to locate a user, except
        for sign-up on a client that supports the unverified-email flow.
        """
        ext_acc_ident = await self._identification_repo.find_latest_claimed_by_provider_user_id(
            oauth_user.provider_id, oauth_user.provider_user_id
        )

        email_ident = None
        if oauth_user.email_address_provided():
            email_ident = await self._identification_repo.find_claimed_email(
                oauth_user.email_address
            )

        trust_email = oauth_user.email_address_verified or (
            source_type == SourceType.SIGN_UP
            and client is not None
            and client.supports_unverified_email_flow
        )
        candidates = [ext_acc_ident, email_ident] if trust_email else [ext_acc_ident]

        user = None
        for ident in candidates:
            if ident is not None and ident.user_id is not None:
                user = await self._user_repo.get(ident.user_id)
                if user is not None:
                    break

        logger.debug(
            "Resolved provider=%s external_ident=%s email_ident=%s user=%s",
            oauth_user.provider_id,
            ext_acc_ident.id if ext_acc_ident else None,
            email_ident.id if email_ident else None,
            user.id if user else None,
        )
        return ResolvedIdentity(
            external_account_identification=ext_acc_ident,
            email_identification=email_ident,
            user=user,
        )
