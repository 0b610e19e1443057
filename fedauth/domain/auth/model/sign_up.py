from datetime import datetime

from fedauth.domain.auth.model.value import (
    ClientId,
    IdentificationId,
    SAMLConnectionId,
    SessionId,
    SignUpId,
    UserId,
)
from fedauth.domain.shared.model.aggregate import Aggregate

# Fields a sign-up may be configured to require before it converts to a user.
SIGN_UP_FIELDS = ("email_address", "first_name", "last_name", "username")


class SignUp(Aggregate):
    """An in-progress sign-up attempt on a client."""

    id: SignUpId
    instance_id: str
    client_id: ClientId
    email_address_id: IdentificationId | None = None
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    successful_external_account_identification_id: IdentificationId | None = None
    created_user_id: UserId | None = None
    created_session_id: SessionId | None = None
    saml_connection_id: SAMLConnectionId | None = None
    saml_identifier: str | None = None
    required_fields: list[str] = ["email_address"]
    abandon_at: datetime
    created_at: datetime
    updated_at: datetime | None = None

    def missing_fields(self) -> list[str]:
        """Required fields with no value yet, in declaration order."""
        present = {
            "email_address": self.email_address_id is not None,
            "first_name": bool(self.first_name),
            "last_name": bool(self.last_name),
            "username": bool(self.username),
        }
        return [f for f in self.required_fields if not present.get(f, False)]

    def identification_ids(self) -> list[IdentificationId]:
        return [
            i
            for i in (self.email_address_id, self.successful_external_account_identification_id)
            if i is not None
        ]
