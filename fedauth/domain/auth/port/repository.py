"""Repository ports for the auth domain."""

from abc import abstractmethod
from typing import Protocol

from fedauth.domain.auth.model.account_transfer import AccountTransfer
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.external_account import ExternalAccount
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.oauth import OAuth1RequestToken
from fedauth.domain.auth.model.saml import SAMLConnection
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.sign_in import SignIn
from fedauth.domain.auth.model.sign_up import SignUp
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import (
    AccountTransferId,
    ClientId,
    ExternalAccountId,
    IdentificationId,
    SessionId,
    SignInId,
    SignUpId,
    UserId,
    VerificationId,
)
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.shared.port import Port


class VerificationRepository(Port, Protocol):
    """Repository for Verification persistence."""

    @abstractmethod
    async def get(self, verification_id: VerificationId) -> Verification | None: ...

    @abstractmethod
    async def get_by_nonce(self, nonce: str) -> Verification | None:
        """Get the verification whose state nonce matches the callback ``state``."""
        ...

    @abstractmethod
    async def save(self, verification: Verification) -> None: ...

    @abstractmethod
    async def increment_attempts(self, verification_id: VerificationId) -> int:
        """Atomically add one attempt and return the new count."""
        ...


class IdentificationRepository(Port, Protocol):
    """Repository for Identification persistence."""

    @abstractmethod
    async def get(self, identification_id: IdentificationId) -> Identification | None: ...

    @abstractmethod
    async def save(self, identification: Identification) -> None:
        """Save an identification (create or update).

        Raises:
            UniqueIdentificationViolation: If another verified or reserved
                identification already holds the same identifier and type.
        """
        ...

    @abstractmethod
    async def delete(self, identification_id: IdentificationId) -> None: ...

    @abstractmethod
    async def find_latest_claimed_by_provider_user_id(
        self, provider: str, provider_user_id: str
    ) -> Identification | None:
        """Most recent claimed OAuth identification for a provider account."""
        ...

    @abstractmethod
    async def find_claimed_email(self, email_address: str) -> Identification | None:
        """Claimed verified-or-reserved email identification, verified first."""
        ...

    @abstractmethod
    async def find_by_identifier_and_user(
        self, identifier: str, type: str, user_id: UserId
    ) -> Identification | None: ...

    @abstractmethod
    async def find_by_verification_id(
        self, verification_id: VerificationId
    ) -> Identification | None: ...

    @abstractmethod
    async def list_by_user(self, user_id: UserId) -> list[Identification]: ...

    @abstractmethod
    async def list_by_ids(self, ids: list[IdentificationId]) -> list[Identification]: ...

    @abstractmethod
    async def list_linked_to(self, target_id: IdentificationId) -> list[Identification]:
        """Identifications whose ``target_identification_id`` is ``target_id``."""
        ...

    @abstractmethod
    async def exists_claimed_by_other(self, identification: Identification) -> bool:
        """True if a different claimed identification has the same identifier and type."""
        ...


class ExternalAccountRepository(Port, Protocol):
    """Repository for ExternalAccount persistence."""

    @abstractmethod
    async def get(self, external_account_id: ExternalAccountId) -> ExternalAccount | None: ...

    @abstractmethod
    async def save(self, account: ExternalAccount) -> None: ...

    @abstractmethod
    async def find_latest_by_provider_user_id(
        self, provider: str, provider_user_id: str
    ) -> ExternalAccount | None: ...

    @abstractmethod
    async def find_by_identification_id(
        self, identification_id: IdentificationId
    ) -> ExternalAccount | None: ...

    @abstractmethod
    async def find_verified_by_user_and_provider(
        self, user_id: UserId, provider: str
    ) -> ExternalAccount | None:
        """External account for ``provider`` whose identification is verified and owned by the user."""
        ...


class AccountTransferRepository(Port, Protocol):
    @abstractmethod
    async def get(self, transfer_id: AccountTransferId) -> AccountTransfer | None: ...

    @abstractmethod
    async def save(self, transfer: AccountTransfer) -> None: ...


class SignInRepository(Port, Protocol):
    @abstractmethod
    async def get(self, sign_in_id: SignInId) -> SignIn | None: ...

    @abstractmethod
    async def save(self, sign_in: SignIn) -> None: ...

    @abstractmethod
    async def find_by_success_verification_id(
        self, verification_id: VerificationId
    ) -> SignIn | None: ...


class SignUpRepository(Port, Protocol):
    @abstractmethod
    async def get(self, sign_up_id: SignUpId) -> SignUp | None: ...

    @abstractmethod
    async def save(self, sign_up: SignUp) -> None: ...


class SessionRepository(Port, Protocol):
    """Repository for Session persistence."""

    @abstractmethod
    async def get(self, session_id: SessionId) -> Session | None: ...

    @abstractmethod
    async def save(self, session: Session) -> None: ...

    @abstractmethod
    async def list_by_client(self, client_id: ClientId) -> list[Session]:
        """All sessions of a client, newest first, regardless of status."""
        ...

    @abstractmethod
    async def list_active_by_user(self, user_id: UserId) -> list[Session]: ...

    @abstractmethod
    async def find_latest_by_user(self, user_id: UserId) -> Session | None: ...


class ClientRepository(Port, Protocol):
    @abstractmethod
    async def get(self, client_id: ClientId) -> Client | None: ...

    @abstractmethod
    async def save(self, client: Client) -> None: ...


class UserRepository(Port, Protocol):
    """Repository for User aggregate persistence."""

    @abstractmethod
    async def get(self, user_id: UserId) -> User | None: ...

    @abstractmethod
    async def get_for_update(self, user_id: UserId) -> User | None:
        """Get a user and hold a row lock (SELECT ... FOR UPDATE) until commit."""
        ...

    @abstractmethod
    async def save(self, user: User) -> None: ...


class SAMLConnectionRepository(Port, Protocol):
    @abstractmethod
    async def find_active_by_domain(self, domain: str) -> SAMLConnection | None: ...

    @abstractmethod
    async def save(self, connection: SAMLConnection) -> None: ...


class OAuth1RequestTokenRepository(Port, Protocol):
    @abstractmethod
    async def find(self, nonce: str, token: str) -> OAuth1RequestToken | None: ...

    @abstractmethod
    async def save(self, request_token: OAuth1RequestToken) -> None: ...

    @abstractmethod
    async def delete(self, nonce: str, token: str) -> None: ...
