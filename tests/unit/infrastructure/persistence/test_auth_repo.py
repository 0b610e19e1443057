"""Tests for user, session, sign-in and verification repositories on SQLite."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.sign_in import SignIn
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import (
    SessionId,
    SessionStatus,
    SignInId,
    UserId,
    VerificationId,
)
from fedauth.domain.auth.model.verification import Verification
from fedauth.infrastructure.persistence.repository import (
    SQLAlchemyClientRepository,
    SQLAlchemySessionRepository,
    SQLAlchemySignInRepository,
    SQLAlchemyUserRepository,
    SQLAlchemyVerificationRepository,
)

INSTANCE = "ins_test"


def make_session(
    client: Client,
    user_id: UserId,
    status: SessionStatus = SessionStatus.ACTIVE,
    expire_in: timedelta = timedelta(days=7),
) -> Session:
    now = datetime.now(UTC)
    return Session(
        id=SessionId.generate(),
        instance_id=INSTANCE,
        client_id=client.id,
        user_id=user_id,
        status=status,
        expire_at=now + expire_in,
        abandon_at=now + timedelta(days=30),
        touched_at=now,
        created_at=now,
    )


@pytest.mark.asyncio
class TestUserRepository:
    async def test_round_trip(self, session: AsyncSession):
        repo = SQLAlchemyUserRepository(session)
        user = User.create(INSTANCE, first_name="Jane", last_name="Doe")
        await repo.save(user)

        user.banned = True
        user.failed_verification_attempts = 3
        await repo.save(user)

        got = await repo.get(user.id)
        assert got is not None
        assert got.first_name == "Jane"
        assert got.banned is True
        assert got.failed_verification_attempts == 3

    async def test_missing_user(self, session: AsyncSession):
        assert await SQLAlchemyUserRepository(session).get(UserId.generate()) is None


@pytest.mark.asyncio
class TestSessionRepository:
    async def test_list_active_by_user_filters_status_and_expiry(self, session: AsyncSession):
        client = Client.create(INSTANCE)
        await SQLAlchemyClientRepository(session).save(client)
        user_id = UserId.generate()
        repo = SQLAlchemySessionRepository(session)
        active = make_session(client, user_id)
        await repo.save(active)
        await repo.save(make_session(client, user_id, status=SessionStatus.ENDED))
        await repo.save(make_session(client, user_id, status=SessionStatus.PENDING_ACTIVATION))
        await repo.save(make_session(client, user_id, expire_in=timedelta(seconds=-1)))
        await repo.save(make_session(client, UserId.generate()))

        got = await repo.list_active_by_user(user_id)

        assert [s.id for s in got] == [active.id]

    async def test_list_by_client(self, session: AsyncSession):
        client = Client.create(INSTANCE)
        other = Client.create(INSTANCE)
        repo = SQLAlchemySessionRepository(session)
        mine = make_session(client, UserId.generate())
        await repo.save(mine)
        await repo.save(make_session(other, UserId.generate()))

        got = await repo.list_by_client(client.id)

        assert [s.id for s in got] == [mine.id]

    async def test_status_transition_is_persisted(self, session: AsyncSession):
        client = Client.create(INSTANCE)
        repo = SQLAlchemySessionRepository(session)
        old = make_session(client, UserId.generate())
        await repo.save(old)

        replacement = SessionId.generate()
        old.replace_with(replacement)
        await repo.save(old)

        got = await repo.get(old.id)
        assert got is not None
        assert got.status == SessionStatus.REPLACED
        assert got.replacement_session_id == replacement


@pytest.mark.asyncio
class TestClientRepository:
    async def test_rotation_is_persisted(self, session: AsyncSession):
        repo = SQLAlchemyClientRepository(session)
        client = Client.create(INSTANCE)
        await repo.save(client)
        original = client.rotating_token

        client.rotate_token()
        client.sign_in_id = SignInId.generate()
        await repo.save(client)

        got = await repo.get(client.id)
        assert got is not None
        assert got.rotating_token != original
        assert got.sign_in_id == client.sign_in_id


@pytest.mark.asyncio
class TestSignInRepository:
    async def test_find_by_success_verification_id(self, session: AsyncSession):
        now = datetime.now(UTC)
        verification_id = VerificationId.generate()
        sign_in = SignIn(
            id=SignInId.generate(),
            instance_id=INSTANCE,
            client_id=Client.create(INSTANCE).id,
            first_factor_success_verification_id=verification_id,
            abandon_at=now + timedelta(hours=1),
            created_at=now,
        )
        repo = SQLAlchemySignInRepository(session)
        await repo.save(sign_in)

        got = await repo.find_by_success_verification_id(verification_id)

        assert got is not None
        assert got.id == sign_in.id
        assert await repo.find_by_success_verification_id(VerificationId.generate()) is None


@pytest.mark.asyncio
class TestVerificationRepository:
    async def test_increment_attempts_returns_new_count(self, session: AsyncSession):
        repo = SQLAlchemyVerificationRepository(session)
        verification = Verification.create(INSTANCE, "oauth_google", nonce="n-1")
        await repo.save(verification)

        assert await repo.increment_attempts(verification.id) == 1
        assert await repo.increment_attempts(verification.id) == 2

        got = await repo.get_by_nonce("n-1")
        assert got is not None
        assert got.attempts == 2

    async def test_error_payload_round_trip(self, session: AsyncSession):
        repo = SQLAlchemyVerificationRepository(session)
        verification = Verification.create(
            INSTANCE, "oauth_google", ttl=timedelta(minutes=10)
        )
        verification.error = {"code": "oauth_access_denied", "message": "denied"}
        await repo.save(verification)

        got = await repo.get(verification.id)

        assert got is not None
        assert got.error == {"code": "oauth_access_denied", "message": "denied"}
        assert got.expire_at is not None
        assert got.expire_at.tzinfo is not None
