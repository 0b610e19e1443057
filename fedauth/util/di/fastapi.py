"""Dishka integration that opens one Scope.UOW container per HTTP request."""

from dishka import AsyncContainer
from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from fedauth.util.di.scope import Scope as FedAuthScope


class UnitOfWorkMiddleware:
    """ASGI middleware entering a Scope.UOW child container for each request.

    Mirrors dishka.integrations.starlette.ContainerMiddleware but uses
    Scope.UOW, so the request's AsyncSession (and every repository built on
    it) lives exactly as long as the callback being served. Only plain HTTP
    is handled; lifespan and other ASGI messages pass straight through.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        request = Request(scope, receive=receive, send=send)
        async with request.app.state.dishka_container(
            {Request: request},
            scope=FedAuthScope.UOW,
        ) as request_container:
            request.state.dishka_container = request_container
            return await self.app(scope, receive, send)


def setup_dishka(container: AsyncContainer, app) -> None:
    """Attach the container to the app and install the per-request middleware."""
    app.add_middleware(UnitOfWorkMiddleware)
    app.state.dishka_container = container
