from dishka import AsyncContainer, make_async_container

from fedauth.config import Config
from fedauth.domain.auth.util.di import AuthProvider
from fedauth.infrastructure.event.di import EventProvider
from fedauth.infrastructure.oauth import OAuthInfraProvider
from fedauth.infrastructure.persistence import PersistenceProvider
from fedauth.util.di.scope import Scope


def create_container(config: Config | None = None) -> AsyncContainer:
    # Pydantic Settings populates from env vars at runtime
    config = config or Config()  # type: ignore[call-arg]

    return make_async_container(
        PersistenceProvider(),
        EventProvider(),
        OAuthInfraProvider(),
        AuthProvider(),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]  # Custom scope class
    )
