"""Unit tests for HttpDisposableEmailChecker adapter."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from fedauth.domain.shared.error import ExternalServiceError
from fedauth.infrastructure.oauth.disposable_email import HttpDisposableEmailChecker

URL = "https://quality.example.com/check"


def make_client(payload: dict) -> AsyncMock:
    response = MagicMock(spec=httpx.Response)
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    client = AsyncMock(spec=httpx.AsyncClient)
    client.get.return_value = response
    return client


class TestHttpDisposableEmailChecker:
    @pytest.mark.asyncio
    async def test_disposable_domain(self):
        client = make_client({"disposable": True})

        checker = HttpDisposableEmailChecker(URL, client)

        assert await checker.is_disposable("mailinator.com") is True
        client.get.assert_called_once_with(URL, params={"domain": "mailinator.com"})

    @pytest.mark.asyncio
    async def test_regular_domain(self):
        checker = HttpDisposableEmailChecker(URL, make_client({"disposable": False}))

        assert await checker.is_disposable("example.com") is False

    @pytest.mark.asyncio
    async def test_no_url_configured(self):
        client = AsyncMock(spec=httpx.AsyncClient)

        checker = HttpDisposableEmailChecker("", client)

        assert await checker.is_disposable("mailinator.com") is False
        client.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_raises_external_service_error(self):
        client = AsyncMock(spec=httpx.AsyncClient)
        client.get.side_effect = httpx.ConnectError("refused")

        checker = HttpDisposableEmailChecker(URL, client)

        with pytest.raises(ExternalServiceError):
            await checker.is_disposable("example.com")
