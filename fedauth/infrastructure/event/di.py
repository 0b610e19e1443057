"""Dependency injection provider for the event outbox."""

from dishka import provide

from fedauth.config import Config
from fedauth.domain.shared.model.subscription_registry import SubscriptionRegistry
from fedauth.domain.shared.outbox import Outbox
from fedauth.domain.shared.port.event_repository import EventRepository
from fedauth.util.di.base import Provider
from fedauth.util.di.scope import Scope


class EventProvider(Provider):
    """Provides the Outbox and its subscription registry.

    Outbox is UOW-scoped so its writes share the request's session.
    """

    @provide(scope=Scope.UOW)
    def get_outbox(self, repo: EventRepository, registry: SubscriptionRegistry) -> Outbox:
        return Outbox(_repo=repo, _registry=registry)

    @provide(scope=Scope.APP)
    def get_subscription_registry(self, config: Config) -> SubscriptionRegistry:
        """Consumer groups per event type, from the ``events.subscriptions`` config."""
        return SubscriptionRegistry(
            {event_type: set(groups) for event_type, groups in config.events.subscriptions.items()}
        )
