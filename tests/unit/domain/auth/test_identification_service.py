"""Unit tests for IdentificationService."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fedauth.config import SignUpConfig
from fedauth.domain.auth.error import LastIdentificationDeletion, ResourceNotFound
from fedauth.domain.auth.event.events import UserUpdated
from fedauth.domain.auth.model.external_account import OAuthUser
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import (
    EMAIL_ADDRESS,
    IdentificationId,
    IdentificationStatus,
)
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.service.identification import IdentificationService

INSTANCE = "ins_test"


def make_identification_service(
    identification_repo: AsyncMock | None = None,
    verification_repo: AsyncMock | None = None,
    user_repo: AsyncMock | None = None,
    session_service: AsyncMock | None = None,
    outbox: AsyncMock | None = None,
) -> IdentificationService:
    return IdentificationService(
        _identification_repo=identification_repo or AsyncMock(),
        _verification_repo=verification_repo or AsyncMock(),
        _user_repo=user_repo or AsyncMock(),
        _session_service=session_service or AsyncMock(),
        _outbox=outbox or AsyncMock(),
        _sign_up_config=SignUpConfig(),
    )


def make_email(user: User, address: str = "jane@example.com") -> Identification:
    return Identification.create(
        INSTANCE,
        EMAIL_ADDRESS,
        identifier=address,
        status=IdentificationStatus.VERIFIED,
        user_id=user.id,
    )


class TestDeleteIdentification:
    """Tests for IdentificationService.delete."""

    @pytest.mark.asyncio
    async def test_locks_user_before_counting(self):
        """The last-identification check runs under a row lock on the user."""
        user = User.create(INSTANCE)
        first, second = make_email(user), make_email(user, "jane@work.com")
        calls = MagicMock()
        user_repo = AsyncMock()
        user_repo.get_for_update.return_value = user
        identification_repo = AsyncMock()
        identification_repo.list_by_user.return_value = [first, second]
        identification_repo.list_linked_to.return_value = []
        calls.attach_mock(user_repo.get_for_update, "lock")
        calls.attach_mock(identification_repo.list_by_user, "count")

        service = make_identification_service(identification_repo, user_repo=user_repo)
        await service.delete(user.id, second.id)

        assert [c[0] for c in calls.mock_calls] == ["lock", "count"]
        identification_repo.delete.assert_awaited_once_with(second.id)

    @pytest.mark.asyncio
    async def test_last_identification_cannot_be_deleted(self):
        user = User.create(INSTANCE)
        only = make_email(user)
        user_repo = AsyncMock()
        user_repo.get_for_update.return_value = user
        identification_repo = AsyncMock()
        identification_repo.list_by_user.return_value = [only]

        service = make_identification_service(identification_repo, user_repo=user_repo)
        with pytest.raises(LastIdentificationDeletion):
            await service.delete(user.id, only.id)

        identification_repo.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_identification(self):
        user = User.create(INSTANCE)
        user_repo = AsyncMock()
        user_repo.get_for_update.return_value = user
        identification_repo = AsyncMock()
        identification_repo.list_by_user.return_value = [make_email(user), make_email(user)]

        service = make_identification_service(identification_repo, user_repo=user_repo)
        with pytest.raises(ResourceNotFound):
            await service.delete(user.id, IdentificationId.generate())

    @pytest.mark.asyncio
    async def test_primary_email_moves_and_links_are_cleared(self):
        user = User.create(INSTANCE)
        primary, other = make_email(user), make_email(user, "jane@work.com")
        user.primary_email_address_id = primary.id
        linked = Identification.create(
            INSTANCE, "oauth_google", status=IdentificationStatus.VERIFIED, user_id=user.id
        )
        linked.target_identification_id = primary.id
        user_repo = AsyncMock()
        user_repo.get_for_update.return_value = user
        identification_repo = AsyncMock()
        identification_repo.list_by_user.return_value = [primary, other, linked]
        identification_repo.list_linked_to.return_value = [linked]
        outbox = AsyncMock()

        service = make_identification_service(identification_repo, user_repo=user_repo, outbox=outbox)
        await service.delete(user.id, primary.id)

        assert linked.target_identification_id is None
        assert user.primary_email_address_id == other.id
        assert isinstance(outbox.append.call_args.args[0], UserUpdated)


class TestReverifyFlow:
    """Tests for the OAuth email re-verification flow."""

    @pytest.mark.asyncio
    async def test_initiate_marks_oauth_identification(self):
        identification_repo = AsyncMock()
        service = make_identification_service(identification_repo)
        oauth_ident = Identification.create(INSTANCE, "oauth_google")
        email_ident = Identification.create(INSTANCE, EMAIL_ADDRESS, identifier="jane@example.com")
        oauth_user = OAuthUser(provider_id="oauth_google", provider_user_id="g-1")

        await service.initiate_reverify_flow(oauth_user, oauth_ident, email_ident)

        assert oauth_ident.requires_verification is False
        identification_repo.save.assert_awaited_once_with(oauth_ident)

    @pytest.mark.asyncio
    async def test_initiate_skipped_for_verified_email(self):
        identification_repo = AsyncMock()
        service = make_identification_service(identification_repo)
        oauth_ident = Identification.create(INSTANCE, "oauth_google")
        oauth_user = OAuthUser(
            provider_id="oauth_google", provider_user_id="g-1", email_address_verified=True
        )

        await service.initiate_reverify_flow(
            oauth_user, oauth_ident, Identification.create(INSTANCE, EMAIL_ADDRESS)
        )

        assert oauth_ident.requires_verification is None

    @pytest.mark.asyncio
    async def test_finalize_flags_link_and_revokes_sessions(self):
        user = User.create(INSTANCE)
        email_ident = make_email(user)
        oauth_verification = Verification.create(INSTANCE, "oauth_google")
        oauth_ident = Identification.create(
            INSTANCE,
            "oauth_google",
            status=IdentificationStatus.VERIFIED,
            user_id=user.id,
            verification_id=oauth_verification.id,
        )
        oauth_ident.requires_verification = False
        oauth_ident.target_identification_id = email_ident.id
        identification_repo = AsyncMock()
        identification_repo.list_by_user.return_value = [email_ident, oauth_ident]
        verification_repo = AsyncMock()
        verification_repo.get.return_value = oauth_verification
        session_service = AsyncMock()

        service = make_identification_service(
            identification_repo, verification_repo, session_service=session_service
        )
        await service.finalize_reverify_flow(user.id)

        assert oauth_ident.requires_verification is True
        assert oauth_verification.error["code"] == (
            "external_account_email_address_verification_required"
        )
        session_service.revoke_all_for_user.assert_awaited_once_with(user.id)

    @pytest.mark.asyncio
    async def test_finalize_without_pending_links_keeps_sessions(self):
        user = User.create(INSTANCE)
        identification_repo = AsyncMock()
        identification_repo.list_by_user.return_value = [make_email(user)]
        session_service = AsyncMock()

        service = make_identification_service(identification_repo, session_service=session_service)
        await service.finalize_reverify_flow(user.id)

        session_service.revoke_all_for_user.assert_not_called()
