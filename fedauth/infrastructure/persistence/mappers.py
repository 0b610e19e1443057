"""Row helpers shared by the auth repositories."""

from datetime import UTC, datetime
from typing import Any, Mapping, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import Table, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

M = TypeVar("M", bound=BaseModel)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def row_to_model(model_cls: type[M], row: Mapping[str, Any]) -> M:
    """Convert a database row to a domain model."""
    data = {
        key: _as_utc(value) if isinstance(value, datetime) else value
        for key, value in row.items()
    }
    return model_cls.model_validate(data)


def model_to_row(model: BaseModel) -> dict[str, Any]:
    """Convert a domain model to a database row dict.

    Identifiers are stored as strings; everything else is passed through.
    """
    return {
        key: str(value) if isinstance(value, UUID) else value
        for key, value in model.model_dump().items()
    }


async def upsert(session: AsyncSession, table: Table, row: dict[str, Any]) -> None:
    """Update the row with the same id, or insert it."""
    existing = await session.execute(select(table.c.id).where(table.c.id == row["id"]))
    if existing.first():
        stmt = update(table).where(table.c.id == row["id"]).values(**row)
    else:
        stmt = insert(table).values(**row)

    await session.execute(stmt)
    await session.flush()
