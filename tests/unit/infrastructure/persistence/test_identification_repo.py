"""Tests for the identification and external account repositories on SQLite."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.auth.model.external_account import ExternalAccount, OAuthUser
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import EMAIL_ADDRESS, IdentificationStatus
from fedauth.domain.shared.error import UniqueIdentificationViolation
from fedauth.infrastructure.persistence.repository import (
    SQLAlchemyExternalAccountRepository,
    SQLAlchemyIdentificationRepository,
)

INSTANCE = "ins_test"


def email(
    address: str = "jane@example.com",
    status: IdentificationStatus = IdentificationStatus.VERIFIED,
    user: User | None = None,
) -> Identification:
    return Identification.create(
        INSTANCE,
        EMAIL_ADDRESS,
        identifier=address,
        status=status,
        user_id=user.id if user else None,
    )


async def link_external_account(
    session: AsyncSession,
    provider_user_id: str = "g-123",
    status: IdentificationStatus = IdentificationStatus.VERIFIED,
    user: User | None = None,
) -> tuple[Identification, ExternalAccount]:
    ident = Identification.create(
        INSTANCE, "oauth_google", status=status, user_id=user.id if user else None
    )
    await SQLAlchemyIdentificationRepository(session).save(ident)
    account = ExternalAccount.from_oauth_user(
        INSTANCE,
        ident.id,
        OAuthUser(provider_id="oauth_google", provider_user_id=provider_user_id),
        "email profile",
    )
    await SQLAlchemyExternalAccountRepository(session).save(account)
    return ident, account


@pytest.mark.asyncio
class TestClaimedUniqueness:
    """The partial unique index covers verified and reserved identifications only."""

    async def test_second_verified_identification_conflicts(self, session: AsyncSession):
        repo = SQLAlchemyIdentificationRepository(session)
        await repo.save(email())

        with pytest.raises(UniqueIdentificationViolation):
            await repo.save(email())

    async def test_reserved_conflicts_with_verified(self, session: AsyncSession):
        repo = SQLAlchemyIdentificationRepository(session)
        await repo.save(email())

        with pytest.raises(UniqueIdentificationViolation):
            await repo.save(email(status=IdentificationStatus.RESERVED))

    async def test_unclaimed_duplicates_are_allowed(self, session: AsyncSession):
        repo = SQLAlchemyIdentificationRepository(session)
        await repo.save(email())
        await repo.save(email(status=IdentificationStatus.NOT_SET))
        await repo.save(email(status=IdentificationStatus.NOT_SET))

    async def test_save_updates_existing_row(self, session: AsyncSession):
        repo = SQLAlchemyIdentificationRepository(session)
        ident = email(status=IdentificationStatus.NOT_SET)
        await repo.save(ident)

        ident.verify()
        await repo.save(ident)

        got = await repo.get(ident.id)
        assert got is not None
        assert got.status == IdentificationStatus.VERIFIED
        assert got.created_at.tzinfo is not None


@pytest.mark.asyncio
class TestFindClaimedEmail:
    async def test_verified_preferred_over_reserved(self, session: AsyncSession):
        repo = SQLAlchemyIdentificationRepository(session)
        verified = email()
        reserved = email("jane@example.com", IdentificationStatus.RESERVED)
        # Different instance so both fit under the unique index
        reserved.instance_id = "ins_other"
        reserved.created_at = verified.created_at + timedelta(seconds=5)
        await repo.save(verified)
        await repo.save(reserved)

        got = await repo.find_claimed_email("Jane@Example.com")

        assert got is not None
        assert got.id == verified.id

    async def test_unclaimed_is_ignored(self, session: AsyncSession):
        repo = SQLAlchemyIdentificationRepository(session)
        await repo.save(email(status=IdentificationStatus.NOT_SET))

        assert await repo.find_claimed_email("jane@example.com") is None


@pytest.mark.asyncio
class TestFindByProviderUserId:
    async def test_finds_claimed_oauth_identification(self, session: AsyncSession):
        ident, _ = await link_external_account(session)
        repo = SQLAlchemyIdentificationRepository(session)

        got = await repo.find_latest_claimed_by_provider_user_id("oauth_google", "g-123")

        assert got is not None
        assert got.id == ident.id

    async def test_unclaimed_oauth_identification_is_ignored(self, session: AsyncSession):
        await link_external_account(session, status=IdentificationStatus.NOT_SET)
        repo = SQLAlchemyIdentificationRepository(session)

        assert await repo.find_latest_claimed_by_provider_user_id("oauth_google", "g-123") is None

    async def test_other_provider_user(self, session: AsyncSession):
        await link_external_account(session)
        repo = SQLAlchemyIdentificationRepository(session)

        assert await repo.find_latest_claimed_by_provider_user_id("oauth_google", "g-999") is None


@pytest.mark.asyncio
class TestUserQueries:
    async def test_list_by_user_and_linked(self, session: AsyncSession):
        user = User.create(INSTANCE)
        repo = SQLAlchemyIdentificationRepository(session)
        target = email(user=user)
        await repo.save(target)
        oauth, _ = await link_external_account(session, user=user)
        oauth.target_identification_id = target.id
        await repo.save(oauth)

        owned = await repo.list_by_user(user.id)
        linked = await repo.list_linked_to(target.id)

        assert {i.id for i in owned} == {target.id, oauth.id}
        assert [i.id for i in linked] == [oauth.id]

    async def test_delete(self, session: AsyncSession):
        repo = SQLAlchemyIdentificationRepository(session)
        ident = email()
        await repo.save(ident)

        await repo.delete(ident.id)

        assert await repo.get(ident.id) is None

    async def test_find_verified_external_account_by_user(self, session: AsyncSession):
        user = User.create(INSTANCE)
        _, account = await link_external_account(session, user=user)
        repo = SQLAlchemyExternalAccountRepository(session)

        got = await repo.find_verified_by_user_and_provider(user.id, "oauth_google")

        assert got is not None
        assert got.id == account.id
        assert await repo.find_verified_by_user_and_provider(user.id, "oauth_github") is None


@pytest.mark.asyncio
class TestExternalAccountRepository:
    async def test_latest_by_provider_user_id(self, session: AsyncSession):
        await link_external_account(session, status=IdentificationStatus.NOT_SET)
        _, newer = await link_external_account(session, status=IdentificationStatus.NOT_SET)
        newer.created_at = datetime.now(UTC) + timedelta(seconds=5)
        repo = SQLAlchemyExternalAccountRepository(session)
        await repo.save(newer)

        got = await repo.find_latest_by_provider_user_id("oauth_google", "g-123")

        assert got is not None
        assert got.id == newer.id
        assert got.approved_scopes == "email profile"
