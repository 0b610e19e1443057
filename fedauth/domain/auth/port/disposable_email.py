"""Disposable email domain lookup port."""

from abc import abstractmethod
from typing import Protocol

from fedauth.domain.shared.port import Port


class DisposableEmailChecker(Port, Protocol):
    """Port for an email-quality service.

    Raises:
        ExternalServiceError: If the lookup cannot be completed. Callers
            treat that as "not disposable".
    """

    @abstractmethod
    async def is_disposable(self, domain: str) -> bool: ...
