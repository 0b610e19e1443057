from fedauth.infrastructure.persistence.repository.auth import (
    SQLAlchemyAccountTransferRepository,
    SQLAlchemyClientRepository,
    SQLAlchemySessionRepository,
    SQLAlchemySignInRepository,
    SQLAlchemySignUpRepository,
    SQLAlchemyUserRepository,
    SQLAlchemyVerificationRepository,
)
from fedauth.infrastructure.persistence.repository.event import SQLAlchemyEventRepository
from fedauth.infrastructure.persistence.repository.identification import (
    SQLAlchemyExternalAccountRepository,
    SQLAlchemyIdentificationRepository,
)
from fedauth.infrastructure.persistence.repository.oauth import (
    SQLAlchemyOAuth1RequestTokenRepository,
    SQLAlchemySAMLConnectionRepository,
)

__all__ = [
    "SQLAlchemyAccountTransferRepository",
    "SQLAlchemyClientRepository",
    "SQLAlchemyEventRepository",
    "SQLAlchemyExternalAccountRepository",
    "SQLAlchemyIdentificationRepository",
    "SQLAlchemyOAuth1RequestTokenRepository",
    "SQLAlchemySAMLConnectionRepository",
    "SQLAlchemySessionRepository",
    "SQLAlchemySignInRepository",
    "SQLAlchemySignUpRepository",
    "SQLAlchemyUserRepository",
    "SQLAlchemyVerificationRepository",
]
