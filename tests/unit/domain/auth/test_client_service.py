"""Unit tests for ClientService: cookies, CSRF and redirect safety."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse
from unittest.mock import AsyncMock

import pytest

from fedauth.config import CookieConfig, EnvironmentType, InstanceConfig, JwtConfig
from fedauth.domain.auth.error import RedirectURLMismatch
from fedauth.domain.auth.model.account_transfer import AccountTransfer
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.value import IdentificationId
from fedauth.domain.auth.service.client import (
    FINAL_REDIRECT_URL,
    SET_COOKIE_CLIENT_ID,
    ClientService,
    add_query_params,
)

INSTANCE = "ins_test"


def make_client_service(
    client_repo: AsyncMock | None = None,
    instance: InstanceConfig | None = None,
) -> ClientService:
    return ClientService(
        _client_repo=client_repo or AsyncMock(),
        _jwt=JwtConfig(signing_key="test-secret-key-256-bits-long-xx"),
        _cookies=CookieConfig(),
        _instance=instance or InstanceConfig(id=INSTANCE),
    )


def production(**kwargs) -> InstanceConfig:
    return InstanceConfig(id=INSTANCE, environment=EnvironmentType.PRODUCTION, **kwargs)


def test_add_query_params_keeps_existing_query():
    url = add_query_params("https://app.example.com/cb?a=1", {"b": "2"})

    assert parse_qs(urlparse(url).query) == {"a": ["1"], "b": ["2"]}


class TestClientCookie:
    """Tests for cookie_value / from_token."""

    @pytest.mark.asyncio
    async def test_cookie_resolves_to_client(self):
        client = Client.create(INSTANCE)
        client_repo = AsyncMock()
        client_repo.get.return_value = client
        service = make_client_service(client_repo)

        assert await service.from_token(service.cookie_value(client)) is client

    @pytest.mark.asyncio
    async def test_rotated_token_invalidates_old_cookie(self):
        client = Client.create(INSTANCE)
        client_repo = AsyncMock()
        client_repo.get.return_value = client
        service = make_client_service(client_repo)
        old_cookie = service.cookie_value(client)

        client.rotate_token()

        assert await service.from_token(old_cookie) is None

    @pytest.mark.asyncio
    async def test_garbage_cookie(self):
        assert await make_client_service().from_token("garbage") is None


class TestCsrf:
    def test_matching_tokens(self):
        token = ClientService.new_csrf_token()

        assert ClientService.csrf_matches(token, token)

    def test_missing_or_different_tokens(self):
        assert not ClientService.csrf_matches(None, "x")
        assert not ClientService.csrf_matches("x", "")
        assert not ClientService.csrf_matches("x", "y")


class TestRedirectSafety:
    """Tests for the rotating-token-nonce redirect."""

    def test_no_nonce_leaves_url_untouched(self):
        service = make_client_service(instance=production())
        client = Client.create(INSTANCE)

        assert service.with_rotating_token_nonce("myapp://cb", client) == "myapp://cb"

    def test_nonce_appended_to_allowed_url(self):
        service = make_client_service(instance=production(allowed_redirect_urls=["myapp://cb"]))
        client = Client.create(INSTANCE)
        client.rotating_token_nonce = "nonce-xyz"

        url = service.with_rotating_token_nonce("myapp://cb", client)

        assert parse_qs(urlparse(url).query)["rotating_token_nonce"] == ["nonce-xyz"]

    def test_unregistered_url_rejected_in_production(self):
        service = make_client_service(instance=production(allowed_redirect_urls=["myapp://cb"]))
        client = Client.create(INSTANCE)
        client.rotating_token_nonce = "nonce-xyz"

        with pytest.raises(RedirectURLMismatch):
            service.with_rotating_token_nonce("https://evil.example.com/", client)

    def test_any_url_allowed_in_development(self):
        service = make_client_service()
        client = Client.create(INSTANCE)
        client.rotating_token_nonce = "nonce-xyz"

        url = service.with_rotating_token_nonce("https://anything.example.com/", client)

        assert "rotating_token_nonce=nonce-xyz" in url


class TestDevelopmentCookieHop:
    def test_hop_url_carries_client_and_final_redirect(self):
        service = make_client_service(instance=InstanceConfig(fapi_url="https://clerk.example.dev"))
        client = Client.create(INSTANCE)

        url = service.development_cookie_hop_url(client, "csrf-1", "https://app.example.dev/?x=1")
        query = parse_qs(urlparse(url).query)

        assert url.startswith("https://clerk.example.dev/v1/oauth_callback?")
        assert query[SET_COOKIE_CLIENT_ID] == [str(client.id)]
        assert query[FINAL_REDIRECT_URL] == ["https://app.example.dev/?x=1"]

    def test_cookie_domain_strips_auth_subdomain(self):
        service = make_client_service(instance=InstanceConfig(domain="clerk.example.com"))

        assert service.cookie_domain() == "example.com"
        assert service.cookie_domain("clerk") == "clerk.example.com"


class TestRecordAccountTransfers:
    @pytest.mark.asyncio
    async def test_sign_up_transfer_recorded(self):
        client_repo = AsyncMock()
        service = make_client_service(client_repo)
        client = Client.create(INSTANCE)
        transfer = AccountTransfer.create(
            INSTANCE, IdentificationId.generate(), timedelta(minutes=10)
        )

        await service.record_account_transfers(client, None, transfer)

        assert client.to_sign_up_account_transfer_id == transfer.id
        assert client.to_sign_in_account_transfer_id is None
        client_repo.save.assert_awaited_once_with(client)

    @pytest.mark.asyncio
    async def test_nothing_to_record(self):
        client_repo = AsyncMock()
        service = make_client_service(client_repo)

        await service.record_account_transfers(Client.create(INSTANCE), None, None)

        client_repo.save.assert_not_called()
