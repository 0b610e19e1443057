from abc import abstractmethod
from types import TracebackType
from typing import Optional, Protocol, Type

from fedauth.domain.shared.port import Port


class UnitOfWork(Port, Protocol):
    """Transaction boundary over the request's unit of work.

    Used directly (``await uow.commit()``) where the caller decides the outcome,
    or as an async context manager that commits on success and rolls back when
    the block raises.
    """

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]] = None,
        exc: Optional[BaseException] = None,
        tb: Optional[TracebackType] = None,
    ) -> None:
        if exc is not None:
            await self.rollback()
        else:
            await self.commit()
