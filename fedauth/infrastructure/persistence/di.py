from typing import AsyncIterable

from dishka import from_context, provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fedauth.config import Config
from fedauth.domain.auth.port.repository import (
    AccountTransferRepository,
    ClientRepository,
    ExternalAccountRepository,
    IdentificationRepository,
    OAuth1RequestTokenRepository,
    SAMLConnectionRepository,
    SessionRepository,
    SignInRepository,
    SignUpRepository,
    UserRepository,
    VerificationRepository,
)
from fedauth.domain.shared.port.event_repository import EventRepository
from fedauth.domain.shared.uow import UnitOfWork
from fedauth.infrastructure.persistence.database import (
    create_db_engine,
    create_session_factory,
)
from fedauth.infrastructure.persistence.repository import (
    SQLAlchemyAccountTransferRepository,
    SQLAlchemyClientRepository,
    SQLAlchemyEventRepository,
    SQLAlchemyExternalAccountRepository,
    SQLAlchemyIdentificationRepository,
    SQLAlchemyOAuth1RequestTokenRepository,
    SQLAlchemySAMLConnectionRepository,
    SQLAlchemySessionRepository,
    SQLAlchemySignInRepository,
    SQLAlchemySignUpRepository,
    SQLAlchemyUserRepository,
    SQLAlchemyVerificationRepository,
)
from fedauth.infrastructure.persistence.uow import SQLAlchemyUnitOfWork
from fedauth.util.di.base import Provider
from fedauth.util.di.scope import Scope


class PersistenceProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)

    # APP-scoped factories
    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterable[AsyncEngine]:
        engine = create_db_engine(config)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return create_session_factory(engine)

    # UOW-scoped session (one per unit of work)
    @provide(scope=Scope.UOW)
    async def get_session(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> AsyncIterable[AsyncSession]:
        async with session_factory() as session:
            yield session
            await session.commit()

    uow = provide(SQLAlchemyUnitOfWork, scope=Scope.UOW, provides=UnitOfWork)

    # UOW-scoped repositories
    user_repo = provide(SQLAlchemyUserRepository, scope=Scope.UOW, provides=UserRepository)
    client_repo = provide(SQLAlchemyClientRepository, scope=Scope.UOW, provides=ClientRepository)
    session_repo = provide(
        SQLAlchemySessionRepository, scope=Scope.UOW, provides=SessionRepository
    )
    sign_in_repo = provide(SQLAlchemySignInRepository, scope=Scope.UOW, provides=SignInRepository)
    sign_up_repo = provide(SQLAlchemySignUpRepository, scope=Scope.UOW, provides=SignUpRepository)
    verification_repo = provide(
        SQLAlchemyVerificationRepository, scope=Scope.UOW, provides=VerificationRepository
    )
    identification_repo = provide(
        SQLAlchemyIdentificationRepository, scope=Scope.UOW, provides=IdentificationRepository
    )
    external_account_repo = provide(
        SQLAlchemyExternalAccountRepository, scope=Scope.UOW, provides=ExternalAccountRepository
    )
    account_transfer_repo = provide(
        SQLAlchemyAccountTransferRepository, scope=Scope.UOW, provides=AccountTransferRepository
    )
    saml_connection_repo = provide(
        SQLAlchemySAMLConnectionRepository, scope=Scope.UOW, provides=SAMLConnectionRepository
    )
    oauth1_request_token_repo = provide(
        SQLAlchemyOAuth1RequestTokenRepository,
        scope=Scope.UOW,
        provides=OAuth1RequestTokenRepository,
    )
    event_repo = provide(SQLAlchemyEventRepository, scope=Scope.UOW, provides=EventRepository)
