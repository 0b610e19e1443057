"""Unit tests for SignInService."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from fedauth.config import LockoutConfig, SessionConfig
from fedauth.domain.auth.error import SessionCreationNotAllowed, UserLocked
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.sign_in import SignIn
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import (
    IdentificationId,
    SessionId,
    SessionStatus,
    SignInId,
    SignUpId,
)
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.service.client import ClientService
from fedauth.domain.auth.service.sign_in import SignInService

INSTANCE = "ins_test"


def make_sign_in_service(
    session_service: AsyncMock | None = None,
    user_repo: AsyncMock | None = None,
    client_service: MagicMock | None = None,
    session_config: SessionConfig | None = None,
    lockout_config: LockoutConfig | None = None,
) -> SignInService:
    if session_service is None:
        session_service = AsyncMock()
        session_service.list_current_by_client.return_value = []
    return SignInService(
        _sign_in_repo=AsyncMock(),
        _user_repo=user_repo or AsyncMock(),
        _session_service=session_service,
        _identification_service=AsyncMock(),
        _client_service=client_service or MagicMock(spec=ClientService),
        _session_config=session_config or SessionConfig(),
        _lockout_config=lockout_config or LockoutConfig(),
    )


def make_sign_in(client: Client) -> SignIn:
    now = datetime.now(UTC)
    return SignIn(
        id=SignInId.generate(),
        instance_id=INSTANCE,
        client_id=client.id,
        identification_id=IdentificationId.generate(),
        abandon_at=now + timedelta(hours=1),
        created_at=now,
    )


def make_session(
    user: User,
    client: Client,
    status: SessionStatus = SessionStatus.ACTIVE,
    actor: dict | None = None,
) -> Session:
    now = datetime.now(UTC)
    return Session(
        id=SessionId.generate(),
        instance_id=INSTANCE,
        client_id=client.id,
        user_id=user.id,
        status=status,
        expire_at=now + timedelta(days=1),
        abandon_at=now + timedelta(days=1),
        touched_at=now,
        actor=actor,
        created_at=now,
    )


class TestFirstFactor:
    def test_skipped_first_factor_counts_as_success(self):
        sign_in = make_sign_in(Client.create(INSTANCE))
        verification = Verification.create(INSTANCE, "oauth_google")

        SignInService.attach_first_factor_verification(sign_in, verification, skip_first_factor=True)

        assert sign_in.first_factor_success_verification_id == verification.id
        assert sign_in.first_factor_current_verification_id is None

    def test_ready_to_convert_requires_second_factor(self):
        sign_in = make_sign_in(Client.create(INSTANCE))
        sign_in.first_factor_success_verification_id = Verification.create(INSTANCE, "x").id
        user = User.create(INSTANCE)

        assert SignInService.is_ready_to_convert(sign_in, user)

        user.two_factor_enabled = True
        assert not SignInService.is_ready_to_convert(sign_in, user)

    def test_password_reset_blocks_conversion(self):
        sign_in = make_sign_in(Client.create(INSTANCE))
        sign_in.first_factor_success_verification_id = Verification.create(INSTANCE, "x").id
        user = User.create(INSTANCE)
        user.requires_new_password = True

        SignInService.sync_password_reset(sign_in, user)

        assert not SignInService.is_ready_to_convert(sign_in, user)

    def test_locked_user(self):
        service = make_sign_in_service(lockout_config=LockoutConfig(enabled=True))
        user = User.create(INSTANCE)
        user.locked_at = datetime.now(UTC)

        with pytest.raises(UserLocked):
            service.ensure_user_not_locked(user)


class TestConvertToSession:
    """Tests for SignInService.convert_to_session."""

    @pytest.mark.asyncio
    async def test_creates_pending_session_and_rotates_client(self):
        client = Client.create(INSTANCE)
        client.sign_in_id = SignInId.generate()
        old_token = client.rotating_token
        user = User.create(INSTANCE)
        sign_in = make_sign_in(client)
        pending = make_session(user, client, SessionStatus.PENDING_ACTIVATION)
        session_service = AsyncMock()
        session_service.list_current_by_client.return_value = []
        session_service.create.return_value = pending

        service = make_sign_in_service(session_service)
        session = await service.convert_to_session(
            sign_in, client, user, rotating_token_nonce="nonce-xyz"
        )

        assert session is pending
        assert sign_in.created_session_id == pending.id
        assert client.sign_in_id is None
        assert client.rotating_token != old_token
        assert client.rotating_token_nonce == "nonce-xyz"
        _, kwargs = session_service.create.call_args
        assert kwargs["status"] == SessionStatus.PENDING_ACTIVATION

    @pytest.mark.asyncio
    async def test_ended_session_of_same_user_is_replaced(self):
        client = Client.create(INSTANCE)
        user = User.create(INSTANCE)
        dead = make_session(user, client, SessionStatus.ENDED)
        pending = make_session(user, client, SessionStatus.PENDING_ACTIVATION)
        session_service = AsyncMock()
        session_service.list_current_by_client.return_value = [dead]
        session_service.create.return_value = pending

        service = make_sign_in_service(session_service)
        await service.convert_to_session(make_sign_in(client), client, user)

        assert dead.status == SessionStatus.REPLACED
        assert dead.replacement_session_id == pending.id
        session_service.save.assert_awaited_once_with(dead)

    @pytest.mark.asyncio
    async def test_single_session_mode_removes_other_sessions(self):
        client = Client.create(INSTANCE)
        client.sign_up_id = SignUpId.generate()
        user = User.create(INSTANCE)
        other = make_session(User.create(INSTANCE), client)
        session_service = AsyncMock()
        session_service.list_current_by_client.return_value = [other]
        session_service.create.return_value = make_session(user, client)

        service = make_sign_in_service(
            session_service, session_config=SessionConfig(single_session_mode=True)
        )
        await service.convert_to_session(make_sign_in(client), client, user)

        session_service.remove_all.assert_awaited_once_with([other])
        assert client.sign_up_id is None

    @pytest.mark.asyncio
    async def test_impersonation_session_blocks_new_session(self):
        client = Client.create(INSTANCE)
        user = User.create(INSTANCE)
        impersonation = make_session(User.create(INSTANCE), client, actor={"sub": "admin"})
        session_service = AsyncMock()
        session_service.list_current_by_client.return_value = [impersonation]

        service = make_sign_in_service(session_service)
        with pytest.raises(SessionCreationNotAllowed):
            await service.convert_to_session(make_sign_in(client), client, user)

        session_service.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_attempts_reset(self):
        client = Client.create(INSTANCE)
        user = User.create(INSTANCE)
        user.failed_verification_attempts = 3
        session_service = AsyncMock()
        session_service.list_current_by_client.return_value = []
        session_service.create.return_value = make_session(user, client)
        user_repo = AsyncMock()

        service = make_sign_in_service(session_service, user_repo=user_repo)
        await service.convert_to_session(make_sign_in(client), client, user)

        assert user.failed_verification_attempts == 0
        user_repo.save.assert_awaited_once_with(user)
