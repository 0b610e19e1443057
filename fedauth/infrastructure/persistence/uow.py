"""SQLAlchemy adapter implementing UnitOfWork."""

from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.shared.uow import UnitOfWork


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Commits or rolls back the request's AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
