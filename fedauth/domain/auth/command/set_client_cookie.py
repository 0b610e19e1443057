"""Development cookie hop: drops the client cookie on the auth subdomain."""

import logging
from dataclasses import dataclass
from typing import ClassVar

from fedauth.config import InstanceConfig
from fedauth.domain.auth.command.oauth_callback import RedirectResult, ResponseCookie
from fedauth.domain.auth.error import InvalidAuthorization, InvalidCSRFToken
from fedauth.domain.auth.model.value import ClientId
from fedauth.domain.auth.service.client import ClientService
from fedauth.domain.shared.command import Command, CommandHandler

logger = logging.getLogger(__name__)


class SetClientCookie(Command):
    """Query parameters of the cookie hop built by the OAuth callback."""

    __public__: ClassVar[bool] = True

    client_id: str
    subdomain: str | None = None
    csrf_token: str | None = None
    final_redirect_url: str
    csrf_cookie: str | None = None  # Value of the CSRF cookie on this request


@dataclass
class SetClientCookieHandler(CommandHandler[SetClientCookie, RedirectResult]):
    """Handler for SetClientCookie.

    Development and staging instances run on a different site than the
    application, so the callback cannot set the client cookie directly.
    """

    instance: InstanceConfig
    client_service: ClientService

    async def run(self, cmd: SetClientCookie) -> RedirectResult:
        if self.instance.is_production() and not self.client_service.csrf_matches(
            cmd.csrf_cookie, cmd.csrf_token
        ):
            logger.info("Cookie hop CSRF token mismatch for client %s", cmd.client_id)
            raise InvalidCSRFToken()

        try:
            client_id = ClientId.parse(cmd.client_id)
        except ValueError as e:
            raise InvalidAuthorization() from e

        client = await self.client_service.get(client_id)
        if client is None:
            raise InvalidAuthorization()

        cookie = ResponseCookie(
            name=self.client_service.cookie_names.client,
            value=self.client_service.cookie_value(client),
            domain=self.client_service.cookie_domain(cmd.subdomain),
        )
        return RedirectResult(
            redirect_url=cmd.final_redirect_url,
            status_code=307,
            cookies=[cookie],
        )
