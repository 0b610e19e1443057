"""SQLAlchemy adapter implementing EventRepository."""

import logging
from datetime import UTC, datetime
from typing import TypeVar
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.shared.event import Event, EventId
from fedauth.domain.shared.port.event_repository import EventRepository
from fedauth.infrastructure.persistence.tables import deliveries_table, events_table

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Event)


class SQLAlchemyEventRepository(EventRepository):
    """SQLAlchemy-backed event repository.

    Events are stored in an append-only log. Delivery tracking uses a
    separate deliveries table with one row per (event, consumer_group) pair;
    whatever consumes those rows lives outside this service.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save_with_deliveries(
        self,
        event: Event,
        consumer_groups: set[str],
        routing_key: str | None = None,
    ) -> None:
        """Save event to append-only log and create delivery rows."""
        now = datetime.now(UTC)

        event_stmt = insert(events_table).values(
            id=str(event.id),
            event_type=type(event).__name__,
            payload=event.model_dump(mode="json"),
            created_at=event.created_at,
        )
        await self._session.execute(event_stmt)

        for group in sorted(consumer_groups):
            delivery_stmt = insert(deliveries_table).values(
                id=str(uuid4()),
                event_id=str(event.id),
                consumer_group=group,
                status="pending",
                routing_key=routing_key,
                retry_count=0,
                updated_at=now,
            )
            await self._session.execute(delivery_stmt)

        logger.debug(
            "Event %s (%s) saved with %d deliveries",
            event.id,
            type(event).__name__,
            len(consumer_groups),
        )

    async def get(self, event_id: EventId) -> Event | None:
        """Get an event by ID."""
        stmt = select(
            events_table.c.event_type,
            events_table.c.payload,
        ).where(events_table.c.id == str(event_id))

        result = await self._session.execute(stmt)
        row = result.first()

        if row is None:
            return None

        event_type, payload = row
        return self._deserialize(event_type, payload)

    async def find_latest_by_type(self, event_type: type[E]) -> E | None:
        """Find the most recent event of a given type."""
        type_name = event_type.__name__

        stmt = (
            select(events_table.c.payload)
            .where(events_table.c.event_type == type_name)
            .order_by(events_table.c.created_at.desc())
            .limit(1)
        )

        result = await self._session.execute(stmt)
        row = result.first()

        if row is None:
            return None

        (payload,) = row
        return self._deserialize(type_name, payload)  # type: ignore[return-value]

    def _deserialize(self, event_type: str, payload: dict | str) -> Event | None:
        """Deserialize an event from stored data."""
        event_cls = Event._registry.get(event_type)
        if event_cls is None:
            logger.warning("Unknown event type '%s' - skipping", event_type)
            return None

        try:
            if isinstance(payload, str):
                return event_cls.model_validate_json(payload)
            return event_cls.model_validate(payload)
        except ValidationError as e:
            logger.error("Failed to deserialize event type '%s': %s", event_type, e)
            return None
