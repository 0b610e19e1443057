"""Sign-in service: first-factor bookkeeping and conversion into a session."""

import logging
from datetime import UTC, datetime, timedelta

from fedauth.config import LockoutConfig, SessionConfig
from fedauth.domain.auth.error import SessionCreationNotAllowed, UserLocked
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.sign_in import SignIn
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import SessionStatus, SignInId
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.repository import SignInRepository, UserRepository
from fedauth.domain.auth.service.client import ClientService
from fedauth.domain.auth.service.identification import IdentificationService
from fedauth.domain.auth.service.session import SessionService
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


class SignInService(Service):
    _sign_in_repo: SignInRepository
    _user_repo: UserRepository
    _session_service: SessionService
    _identification_service: IdentificationService
    _client_service: ClientService
    _session_config: SessionConfig
    _lockout_config: LockoutConfig

    async def get(self, sign_in_id: SignInId) -> SignIn | None:
        return await self._sign_in_repo.get(sign_in_id)

    async def save(self, sign_in: SignIn) -> None:
        sign_in.updated_at = datetime.now(UTC)
        await self._sign_in_repo.save(sign_in)

    def ensure_user_not_locked(self, user: User) -> None:
        """Raise UserLocked while the user's lockout window is open."""
        if not self._lockout_config.enabled:
            return
        duration = timedelta(seconds=self._lockout_config.duration_seconds)
        if user.is_locked(duration):
            raise UserLocked(user.lockout_expires_in(duration))

    @staticmethod
    def attach_first_factor_verification(
        sign_in: SignIn, verification: Verification, *, skip_first_factor: bool
    ) -> None:
        """Record the OAuth verification as the sign-in's first factor.

        When the first factor is skipped the verification counts as already
        successful; otherwise it is the current attempt of an email step.
        """
        if skip_first_factor:
            sign_in.first_factor_current_verification_id = None
            sign_in.first_factor_success_verification_id = verification.id
        else:
            sign_in.first_factor_current_verification_id = verification.id
            sign_in.first_factor_success_verification_id = None

    @staticmethod
    def sync_password_reset(sign_in: SignIn, user: User) -> None:
        sign_in.requires_new_password = user.requires_new_password

    @staticmethod
    def is_ready_to_convert(sign_in: SignIn, user: User) -> bool:
        if sign_in.identification_id is None or not sign_in.first_factor_succeeded():
            return False
        if sign_in.requires_new_password:
            return False
        if user.two_factor_enabled and not sign_in.second_factor_succeeded():
            return False
        return True

    async def convert_to_session(
        self,
        sign_in: SignIn,
        client: Client,
        user: User,
        *,
        rotating_token_nonce: str | None = None,
        from_transfer: bool = False,
    ) -> Session:
        """Turn a completed sign-in into a pending session.

        The client's current sessions are read outside the finalizer's write
        lock; a narrow race with a concurrent sign-in on the same client is
        accepted. A session of the same user that already ended is marked
        replaced by the new one instead of being removed.

        Raises:
            SessionCreationNotAllowed: If the client holds an active
                impersonation session (multi-session mode)
        """
        current_sessions = await self._session_service.list_current_by_client(client.id)
        dead_session = next((s for s in current_sessions if s.user_id == user.id), None)

        if client.sign_up_id is not None and (self._session_config.single_session_mode or from_transfer):
            client.sign_up_id = None

        now = datetime.now(UTC)
        if self._session_config.single_session_mode:
            if dead_session is None:
                await self._session_service.remove_all(current_sessions)
        elif any(s.is_active(now) and s.has_actor() for s in current_sessions):
            raise SessionCreationNotAllowed()

        await self._identification_service.verify_reserved_for_sign_in(sign_in)
        await self._identification_service.finalize_reverify_flow(user.id)

        session = await self._session_service.create(
            user, client.id, status=SessionStatus.PENDING_ACTIVATION
        )

        if dead_session is not None:
            dead_session.replace_with(session.id)
            await self._session_service.save(dead_session)

        sign_in.created_session_id = session.id
        await self.save(sign_in)

        if rotating_token_nonce is not None:
            client.rotating_token_nonce = rotating_token_nonce
        client.sign_in_id = None
        client.rotate_token()
        await self._client_service.save(client)

        if user.failed_verification_attempts or user.locked_at is not None:
            user.reset_failed_verification_attempts()
            await self._user_repo.save(user)

        logger.info(
            "Sign-in converted: sign_in_id=%s, session_id=%s, user_id=%s",
            sign_in.id,
            session.id,
            user.id,
        )
        return session
