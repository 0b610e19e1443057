"""Auth domain ports."""

from .disposable_email import DisposableEmailChecker
from .oauth_provider import OAuthProvider, ProviderRegistry
from .repository import (
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

__all__ = [
    "AccountTransferRepository",
    "ClientRepository",
    "DisposableEmailChecker",
    "ExternalAccountRepository",
    "IdentificationRepository",
    "OAuth1RequestTokenRepository",
    "OAuthProvider",
    "ProviderRegistry",
    "SAMLConnectionRepository",
    "SessionRepository",
    "SignInRepository",
    "SignUpRepository",
    "UserRepository",
    "VerificationRepository",
]
