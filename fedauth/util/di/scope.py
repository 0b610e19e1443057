"""Custom Dishka scopes for FedAuth."""

from dishka import BaseScope, new_scope


class Scope(BaseScope):  # type: ignore[misc]  # BaseScope is designed to be subclassed
    """FedAuth dependency injection scopes.

    Hierarchy: APP -> UOW

    - APP: Application lifetime (singletons)
    - UOW: Unit of Work (one inbound HTTP request)
    """

    APP = new_scope("APP")
    UOW = new_scope("UOW")
