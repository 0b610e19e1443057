"""Restriction gate for identifiers entering the instance."""

import logging

from fedauth.config import InstanceConfig, RestrictionsConfig
from fedauth.domain.auth.error import IdentifierNotAllowedAccess
from fedauth.domain.auth.model.value import TEST_EMAIL_SUBADDRESS
from fedauth.domain.auth.port.disposable_email import DisposableEmailChecker
from fedauth.domain.shared.error import ExternalServiceError
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)

SUBADDRESS_SEPARATORS = ("+", "=", "#")


def split_email(identifier: str) -> tuple[str, str]:
    local, _, domain = identifier.rpartition("@")
    return local, domain


def contains_subaddress(identifier: str) -> bool:
    local, _ = split_email(identifier)
    return any(sep in local for sep in SUBADDRESS_SEPARATORS)


def remove_subaddress(identifier: str) -> str:
    local, domain = split_email(identifier)
    for sep in SUBADDRESS_SEPARATORS:
        local = local.split(sep, 1)[0]
    return f"{local}@{domain}"


def is_test_email(identifier: str) -> bool:
    local, _ = split_email(identifier)
    return local.endswith(TEST_EMAIL_SUBADDRESS)


class RestrictionService(Service):
    """Decides whether an identifier may sign in, sign up or be connected.

    Checks run in a fixed order and the first decisive one wins:

    1. Subaddress block (``+``, ``=``, ``#`` in the local part)
    2. Allowlist, when enabled (exact or ``*@domain``)
    3. Blocklist, when enabled (exact, ``*@domain`` or subaddress-stripped)
    4. Disposable domain lookup, failing open
    """

    _config: RestrictionsConfig
    _instance: InstanceConfig
    _disposable_checker: DisposableEmailChecker

    async def check(self, identifier: str, *, block_subaddresses: bool = False) -> None:
        """Raise IdentifierNotAllowedAccess if ``identifier`` is restricted.

        Args:
            identifier: Email address (or other identifier) to check
            block_subaddresses: Force the subaddress block on, in addition to
                the instance setting
        """
        if not identifier:
            return
        identifier = identifier.lower()

        if (block_subaddresses or self._config.block_email_subaddresses) and (
            self._is_restricted_subaddress(identifier)
        ):
            raise IdentifierNotAllowedAccess(identifier)

        if self._config.allowlist_enabled:
            if not self._matches(identifier, self._config.allowlist):
                raise IdentifierNotAllowedAccess(identifier)
            return

        if self._config.blocklist_enabled and self._is_blocked(identifier):
            raise IdentifierNotAllowedAccess(identifier)

        if self._config.block_disposable_email_domains and await self._is_disposable(identifier):
            raise IdentifierNotAllowedAccess(identifier)

    def _is_restricted_subaddress(self, identifier: str) -> bool:
        if "@" not in identifier:
            return False
        if self._instance.test_mode and is_test_email(identifier):
            return False
        return contains_subaddress(identifier)

    def _is_blocked(self, identifier: str) -> bool:
        if self._matches(identifier, self._config.blocklist):
            return True
        if "@" in identifier and contains_subaddress(identifier):
            return remove_subaddress(identifier) in self._normalized(self._config.blocklist)
        return False

    def _matches(self, identifier: str, entries: list[str]) -> bool:
        normalized = self._normalized(entries)
        if identifier in normalized:
            return True
        _, domain = split_email(identifier)
        return bool(domain) and f"*@{domain}" in normalized

    @staticmethod
    def _normalized(entries: list[str]) -> set[str]:
        return {e.strip().lower() for e in entries}

    async def _is_disposable(self, identifier: str) -> bool:
        _, domain = split_email(identifier)
        if not domain:
            return False
        try:
            return await self._disposable_checker.is_disposable(domain)
        except ExternalServiceError:
            logger.exception("Disposable email lookup failed for domain=%s, allowing", domain)
            return False
