"""Tests for SQLAlchemyEventRepository on SQLite."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.auth.event.events import SessionCreated, UserCreated, UserUpdated
from fedauth.domain.shared.event import new_event_id
from fedauth.infrastructure.persistence.repository import SQLAlchemyEventRepository
from fedauth.infrastructure.persistence.tables import deliveries_table


@pytest.mark.asyncio
class TestSaveWithDeliveries:
    async def test_one_delivery_row_per_group(self, session: AsyncSession):
        repo = SQLAlchemyEventRepository(session)
        event = SessionCreated(session_id="sess_1", user_id="user_1", client_id="client_1")

        await repo.save_with_deliveries(event, {"webhooks", "analytics"}, routing_key="user_1")

        result = await session.execute(
            select(
                deliveries_table.c.consumer_group,
                deliveries_table.c.status,
                deliveries_table.c.routing_key,
            ).where(deliveries_table.c.event_id == str(event.id))
        )
        rows = sorted(result.all())
        assert rows == [
            ("analytics", "pending", "user_1"),
            ("webhooks", "pending", "user_1"),
        ]

    async def test_no_groups_still_logs_event(self, session: AsyncSession):
        repo = SQLAlchemyEventRepository(session)
        event = UserCreated(user_id="user_1")

        await repo.save_with_deliveries(event, set())

        got = await repo.get(event.id)
        assert isinstance(got, UserCreated)
        assert got.user_id == "user_1"


@pytest.mark.asyncio
class TestQueries:
    async def test_get_missing(self, session: AsyncSession):
        assert await SQLAlchemyEventRepository(session).get(new_event_id()) is None

    async def test_find_latest_by_type(self, session: AsyncSession):
        repo = SQLAlchemyEventRepository(session)
        earlier = datetime.now(UTC) - timedelta(minutes=1)
        await repo.save_with_deliveries(UserUpdated(user_id="second"), set())
        await repo.save_with_deliveries(UserUpdated(user_id="first", created_at=earlier), set())
        await repo.save_with_deliveries(UserCreated(user_id="other"), set())

        got = await repo.find_latest_by_type(UserUpdated)

        assert isinstance(got, UserUpdated)
        assert got.user_id == "second"

    async def test_find_latest_by_type_none(self, session: AsyncSession):
        repo = SQLAlchemyEventRepository(session)

        assert await repo.find_latest_by_type(SessionCreated) is None
