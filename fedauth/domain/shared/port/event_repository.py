"""EventRepository port: the outbox's storage."""

from typing import Protocol, TypeVar

from fedauth.domain.shared.event import Event, EventId

E = TypeVar("E", bound=Event)


class EventRepository(Protocol):
    """Append-only log of auth events plus one delivery row per subscribed consumer group.

    Writes go through the caller's transaction, so a rolled-back callback leaves
    no SessionCreated or UserUpdated behind for webhook consumers.
    """

    async def save_with_deliveries(
        self,
        event: Event,
        consumer_groups: set[str],
        routing_key: str | None = None,
    ) -> None:
        """Log the event and queue a pending delivery for each group.

        An empty ``consumer_groups`` logs the event without deliveries.
        ``routing_key`` (usually the user id) is copied onto every delivery row.
        """
        ...

    async def get(self, event_id: EventId) -> Event | None: ...

    async def find_latest_by_type(self, event_type: type[E]) -> E | None: ...
