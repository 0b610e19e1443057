"""Identification: a claimable proof of ownership of an identifier."""

from datetime import UTC, datetime

from fedauth.domain.auth.model.value import (
    EMAIL_ADDRESS,
    ExternalAccountId,
    IdentificationId,
    IdentificationStatus,
    UserId,
    VerificationId,
)
from fedauth.domain.shared.model.aggregate import Aggregate


class Identification(Aggregate):
    """An email address, OAuth link or SAML link, optionally owned by a user.

    Invariants:
    - ``(instance_id, identifier, type)`` is unique among verified and
      reserved identifications (enforced by a partial unique index).
    - ``target_identification_id`` links an OAuth identification to the email
      identification it vouches for.
    """

    id: IdentificationId
    instance_id: str
    type: str  # "email_address", "saml", or an OAuth provider id
    identifier: str | None = None
    status: IdentificationStatus = IdentificationStatus.NOT_SET
    user_id: UserId | None = None
    verification_id: VerificationId | None = None
    external_account_id: ExternalAccountId | None = None
    target_identification_id: IdentificationId | None = None
    # None: no re-verify flow. False: flow initiated. True: email step required.
    requires_verification: bool | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        instance_id: str,
        type: str,
        *,
        identifier: str | None = None,
        status: IdentificationStatus = IdentificationStatus.NOT_SET,
        user_id: UserId | None = None,
        verification_id: VerificationId | None = None,
    ) -> "Identification":
        if identifier is not None and type == EMAIL_ADDRESS:
            identifier = identifier.lower()
        return cls(
            id=IdentificationId.generate(),
            instance_id=instance_id,
            type=type,
            identifier=identifier,
            status=status,
            user_id=user_id,
            verification_id=verification_id,
            created_at=datetime.now(UTC),
        )

    def is_verified(self) -> bool:
        return self.status == IdentificationStatus.VERIFIED

    def is_reserved(self) -> bool:
        return self.status == IdentificationStatus.RESERVED

    def is_email_address(self) -> bool:
        return self.type == EMAIL_ADDRESS

    def is_oauth(self) -> bool:
        return self.type.startswith("oauth_")

    def is_claimed(self) -> bool:
        return self.user_id is not None or self.is_verified() or self.is_reserved()

    def is_claimable_by(self, user_id: UserId) -> bool:
        return not self.is_claimed() or self.user_id == user_id

    def verify(self) -> None:
        self.status = IdentificationStatus.VERIFIED
        self.updated_at = datetime.now(UTC)
