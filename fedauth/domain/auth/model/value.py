"""Value objects for the auth domain."""

from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, RootModel


class EntityId(RootModel[UUID]):
    """Base for UUID-backed identifiers; each entity gets its own subclass."""

    @classmethod
    def generate(cls):
        return cls(uuid4())

    @classmethod
    def parse(cls, value: str):
        return cls(UUID(value))

    def __str__(self) -> str:
        return str(self.root)

    def __hash__(self) -> int:
        return hash(self.root)


class UserId(EntityId):
    """Unique identifier for a User."""


class ClientId(EntityId):
    """Unique identifier for a Client (browser or native device)."""


class SessionId(EntityId):
    """Unique identifier for a Session."""


class SignInId(EntityId):
    """Unique identifier for a SignIn attempt."""


class SignUpId(EntityId):
    """Unique identifier for a SignUp attempt."""


class VerificationId(EntityId):
    """Unique identifier for a Verification."""


class IdentificationId(EntityId):
    """Unique identifier for an Identification."""


class ExternalAccountId(EntityId):
    """Unique identifier for an ExternalAccount."""


class AccountTransferId(EntityId):
    """Unique identifier for an AccountTransfer."""


class SAMLConnectionId(EntityId):
    """Unique identifier for a SAMLConnection."""


class SourceType(StrEnum):
    """Which flow an OAuth/SAML verification was started from."""

    SIGN_IN = "sign_in"
    SIGN_UP = "sign_up"
    OAUTH_CONNECT = "oauth_connect"
    OAUTH_REAUTHORIZE = "oauth_reauthorize"

    def is_authentication(self) -> bool:
        return self in (SourceType.SIGN_IN, SourceType.SIGN_UP)


class ClientType(StrEnum):
    BROWSER = "browser"
    NATIVE = "native"


class VerificationStatus(StrEnum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    TRANSFERABLE = "transferable"
    FAILED = "failed"
    EXPIRED = "expired"


class IdentificationStatus(StrEnum):
    NOT_SET = "not_set"
    RESERVED = "reserved"
    VERIFIED = "verified"


class SessionStatus(StrEnum):
    PENDING_ACTIVATION = "pending_activation"
    ACTIVE = "active"
    ENDED = "ended"
    REMOVED = "removed"
    REVOKED = "revoked"
    REPLACED = "replaced"


EMAIL_ADDRESS = "email_address"
SAML = "saml"

# Test-mode email addresses: anything with a "+clerk_test" subaddress.
TEST_EMAIL_SUBADDRESS = "+clerk_test"


class CurrentUser(BaseModel):
    """The signed-in user behind a request, via one of the client's active sessions."""

    user_id: UserId
    session_id: SessionId
