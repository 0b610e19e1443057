"""Outbox: queues auth events for webhook and analytics consumers."""

from fedauth.domain.shared.event import Event
from fedauth.domain.shared.model.subscription_registry import SubscriptionRegistry
from fedauth.domain.shared.port.event_repository import EventRepository
from fedauth.domain.shared.service import Service


class Outbox(Service):
    """Transactional outbox shared by the auth services.

    Each appended event is fanned out to the consumer groups configured under
    ``events.subscriptions``. Events nobody subscribes to are still logged.
    """

    _repo: EventRepository
    _registry: SubscriptionRegistry

    async def append(self, event: Event, routing_key: str | None = None) -> None:
        groups = self._registry.get(type(event).__name__, set())
        await self._repo.save_with_deliveries(
            event, consumer_groups=groups, routing_key=routing_key
        )
