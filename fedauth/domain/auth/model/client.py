import secrets
from datetime import UTC, datetime

from pydantic import BaseModel

from fedauth.domain.auth.model.value import (
    AccountTransferId,
    ClientId,
    SignInId,
    SignUpId,
)
from fedauth.domain.shared.model.aggregate import Aggregate


def generate_rotating_token() -> str:
    return secrets.token_urlsafe(32)


class Client(Aggregate):
    """A browser or native device.

    Owns at most one in-progress SignIn and SignUp, and the rotating token
    its cookie is bound to. ``rotating_token_nonce`` is a one-time value that
    lets a native device without the rotating cookie bootstrap its client JWT
    after an OAuth round trip.
    """

    id: ClientId
    instance_id: str
    rotating_token: str
    rotating_token_nonce: str | None = None
    sign_in_id: SignInId | None = None
    sign_up_id: SignUpId | None = None
    to_sign_in_account_transfer_id: AccountTransferId | None = None
    to_sign_up_account_transfer_id: AccountTransferId | None = None
    supports_unverified_email_flow: bool = False
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def create(cls, instance_id: str) -> "Client":
        return cls(
            id=ClientId.generate(),
            instance_id=instance_id,
            rotating_token=generate_rotating_token(),
            created_at=datetime.now(UTC),
        )

    def rotate_token(self) -> None:
        self.rotating_token = generate_rotating_token()
        self.updated_at = datetime.now(UTC)


class ClientContext(BaseModel):
    """The client a request was made from, if its cookie or token resolved."""

    client: Client | None = None
