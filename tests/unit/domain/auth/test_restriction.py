"""Unit tests for RestrictionService."""

from unittest.mock import AsyncMock

import pytest

from fedauth.config import InstanceConfig, RestrictionsConfig
from fedauth.domain.auth.error import IdentifierNotAllowedAccess
from fedauth.domain.auth.service.restriction import (
    RestrictionService,
    contains_subaddress,
    remove_subaddress,
)
from fedauth.domain.shared.error import ExternalServiceError


def make_restriction_service(
    config: RestrictionsConfig | None = None,
    instance: InstanceConfig | None = None,
    disposable_checker: AsyncMock | None = None,
) -> RestrictionService:
    """Create a RestrictionService with a mocked disposable-domain checker."""
    if disposable_checker is None:
        disposable_checker = AsyncMock()
        disposable_checker.is_disposable.return_value = False

    return RestrictionService(
        _config=config or RestrictionsConfig(),
        _instance=instance or InstanceConfig(),
        _disposable_checker=disposable_checker,
    )


def test_subaddress_helpers():
    assert contains_subaddress("jane+news@example.com")
    assert contains_subaddress("jane=x@example.com")
    assert not contains_subaddress("jane@exa+mple.com")
    assert remove_subaddress("jane+news@example.com") == "jane@example.com"


class TestSubaddressBlock:
    @pytest.mark.asyncio
    async def test_blocked_when_instance_blocks_subaddresses(self):
        service = make_restriction_service(RestrictionsConfig(block_email_subaddresses=True))

        with pytest.raises(IdentifierNotAllowedAccess) as exc_info:
            await service.check("jane+news@example.com")

        assert exc_info.value.meta == {"identifiers": ["jane+news@example.com"]}

    @pytest.mark.asyncio
    async def test_blocked_when_caller_forces_it(self):
        """A provider may demand the block even when the instance does not."""
        service = make_restriction_service()

        with pytest.raises(IdentifierNotAllowedAccess):
            await service.check("jane+news@example.com", block_subaddresses=True)

    @pytest.mark.asyncio
    async def test_test_mode_email_is_exempt(self):
        service = make_restriction_service(
            RestrictionsConfig(block_email_subaddresses=True),
            instance=InstanceConfig(test_mode=True),
        )

        await service.check("jane+clerk_test@example.com")

    @pytest.mark.asyncio
    async def test_plain_address_passes(self):
        service = make_restriction_service(RestrictionsConfig(block_email_subaddresses=True))

        await service.check("jane@example.com")


class TestAllowlist:
    @pytest.mark.asyncio
    async def test_domain_wildcard_allows(self):
        service = make_restriction_service(
            RestrictionsConfig(allowlist_enabled=True, allowlist=["*@example.com"])
        )

        await service.check("Jane@Example.com")

    @pytest.mark.asyncio
    async def test_unlisted_identifier_is_rejected(self):
        service = make_restriction_service(
            RestrictionsConfig(allowlist_enabled=True, allowlist=["boss@example.com"])
        )

        with pytest.raises(IdentifierNotAllowedAccess):
            await service.check("jane@example.com")

    @pytest.mark.asyncio
    async def test_allowlist_match_skips_blocklist(self):
        service = make_restriction_service(
            RestrictionsConfig(
                allowlist_enabled=True,
                allowlist=["jane@example.com"],
                blocklist_enabled=True,
                blocklist=["*@example.com"],
            )
        )

        await service.check("jane@example.com")


class TestBlocklist:
    @pytest.mark.asyncio
    async def test_exact_match_is_blocked(self):
        service = make_restriction_service(
            RestrictionsConfig(blocklist_enabled=True, blocklist=["jane@example.com"])
        )

        with pytest.raises(IdentifierNotAllowedAccess):
            await service.check("jane@example.com")

    @pytest.mark.asyncio
    async def test_subaddress_of_blocked_address_is_blocked(self):
        service = make_restriction_service(
            RestrictionsConfig(blocklist_enabled=True, blocklist=["jane@example.com"])
        )

        with pytest.raises(IdentifierNotAllowedAccess):
            await service.check("jane+other@example.com")

    @pytest.mark.asyncio
    async def test_blocklist_ignored_when_disabled(self):
        service = make_restriction_service(RestrictionsConfig(blocklist=["jane@example.com"]))

        await service.check("jane@example.com")


class TestDisposableDomains:
    @pytest.mark.asyncio
    async def test_disposable_domain_is_blocked(self):
        checker = AsyncMock()
        checker.is_disposable.return_value = True
        service = make_restriction_service(
            RestrictionsConfig(block_disposable_email_domains=True),
            disposable_checker=checker,
        )

        with pytest.raises(IdentifierNotAllowedAccess):
            await service.check("jane@mailinator.com")

        checker.is_disposable.assert_awaited_once_with("mailinator.com")

    @pytest.mark.asyncio
    async def test_lookup_failure_fails_open(self):
        checker = AsyncMock()
        checker.is_disposable.side_effect = ExternalServiceError("checker down")
        service = make_restriction_service(
            RestrictionsConfig(block_disposable_email_domains=True),
            disposable_checker=checker,
        )

        await service.check("jane@example.com")

    @pytest.mark.asyncio
    async def test_not_consulted_when_disabled(self):
        checker = AsyncMock()
        service = make_restriction_service(disposable_checker=checker)

        await service.check("jane@example.com")

        checker.is_disposable.assert_not_called()
