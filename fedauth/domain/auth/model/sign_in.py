from datetime import datetime

from fedauth.domain.auth.model.value import (
    ClientId,
    IdentificationId,
    SAMLConnectionId,
    SessionId,
    SignInId,
    VerificationId,
)
from fedauth.domain.shared.model.aggregate import Aggregate


class SignIn(Aggregate):
    """An in-progress sign-in attempt on a client.

    At most one identification is attached as the first factor. When the
    external identity still needs an email-ownership step,
    ``to_link_identification_id`` holds the OAuth identification that will be
    linked once that step succeeds.
    """

    id: SignInId
    instance_id: str
    client_id: ClientId
    identification_id: IdentificationId | None = None
    to_link_identification_id: IdentificationId | None = None
    first_factor_current_verification_id: VerificationId | None = None
    first_factor_success_verification_id: VerificationId | None = None
    second_factor_success_verification_id: VerificationId | None = None
    requires_new_password: bool = False
    created_session_id: SessionId | None = None
    saml_connection_id: SAMLConnectionId | None = None
    saml_identifier: str | None = None
    abandon_at: datetime
    created_at: datetime
    updated_at: datetime | None = None

    def first_factor_succeeded(self) -> bool:
        return self.first_factor_success_verification_id is not None

    def second_factor_succeeded(self) -> bool:
        return self.second_factor_success_verification_id is not None
