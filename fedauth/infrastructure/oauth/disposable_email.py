"""HTTP adapter for the DisposableEmailChecker port."""

import logging

import httpx

from fedauth.domain.auth.port.disposable_email import DisposableEmailChecker
from fedauth.domain.shared.error import ExternalServiceError

logger = logging.getLogger(__name__)


class HttpDisposableEmailChecker(DisposableEmailChecker):
    """Asks an email-quality service whether a domain is disposable.

    The service answers ``GET {url}?domain=<domain>`` with ``{"disposable": bool}``.
    With no URL configured every domain is treated as non-disposable.
    """

    def __init__(self, url: str, http_client: httpx.AsyncClient) -> None:
        self._url = url
        self._http = http_client

    async def is_disposable(self, domain: str) -> bool:
        if not self._url:
            return False

        try:
            response = await self._http.get(self._url, params={"domain": domain})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(
                f"Disposable email lookup failed for {domain}",
                code="email_quality_unavailable",
            ) from e

        return bool(data.get("disposable", False))
