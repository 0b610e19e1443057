from dishka import Provider as DishkaProvider

from fedauth.util.di.scope import Scope


class Provider(DishkaProvider):
    """Base for all FedAuth DI providers.

    Defaults to Scope.UOW: most bindings (repositories, services, handlers)
    are built around the request's database session. Application-wide
    singletons opt into Scope.APP explicitly.
    """

    scope = Scope.UOW
