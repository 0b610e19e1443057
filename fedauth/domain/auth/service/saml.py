"""SAML diversion for OAuth sign-ins under an enterprise-owned domain."""

import logging
import secrets
from datetime import timedelta

from fedauth.config import InstanceConfig, SAMLConfig
from fedauth.domain.auth.error import InvalidClientState
from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.oauth import OAuthStateToken
from fedauth.domain.auth.model.value import SAML, SignInId, SignUpId, SourceType
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.repository import SAMLConnectionRepository, VerificationRepository
from fedauth.domain.auth.service.restriction import split_email
from fedauth.domain.auth.service.sign_in import SignInService
from fedauth.domain.auth.service.sign_up import SignUpService
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


class SAMLService(Service):
    """Sends sign-ins and sign-ups to the IdP that owns the email's domain.

    When an active SAML connection exists for the profile's domain, the
    OAuth result is not used to authenticate: a SAML verification is
    prepared on the flow object and the caller redirects to the IdP.
    """

    _saml_repo: SAMLConnectionRepository
    _verification_repo: VerificationRepository
    _sign_in_service: SignInService
    _sign_up_service: SignUpService
    _config: SAMLConfig
    _instance: InstanceConfig

    async def divert(self, state: OAuthStateToken, oauth_user: OAuthUser) -> str | None:
        """Prepare a SAML verification and return the IdP URL, or None to continue with OAuth."""
        if not self._config.enabled or not oauth_user.email_address_provided():
            return None
        if not state.source_type.is_authentication():
            return None

        _, domain = split_email(oauth_user.email_address)
        connection = await self._saml_repo.find_active_by_domain(domain)
        if connection is None:
            return None

        verification = Verification.create(
            self._instance.id,
            SAML,
            nonce=secrets.token_urlsafe(32),
            ttl=timedelta(seconds=self._instance.transactional_ttl_seconds),
        )
        await self._verification_repo.save(verification)

        if state.source_type == SourceType.SIGN_IN:
            sign_in = await self._sign_in_service.get(SignInId.parse(state.source_id))
            if sign_in is None:
                raise InvalidClientState("No sign_in.")
            sign_in.saml_connection_id = connection.id
            sign_in.saml_identifier = oauth_user.email_address
            self._sign_in_service.attach_first_factor_verification(
                sign_in, verification, skip_first_factor=False
            )
            await self._sign_in_service.save(sign_in)
        else:
            sign_up = await self._sign_up_service.get(SignUpId.parse(state.source_id))
            if sign_up is None:
                raise InvalidClientState("No sign_up.")
            sign_up.saml_connection_id = connection.id
            sign_up.saml_identifier = oauth_user.email_address
            await self._sign_up_service.save(sign_up)

        logger.info(
            "Diverting %s %s to SAML connection %s", state.source_type, state.source_id, connection.id
        )
        return connection.sso_url(verification.nonce or "")
