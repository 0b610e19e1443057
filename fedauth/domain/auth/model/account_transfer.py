from datetime import UTC, datetime, timedelta

from fedauth.domain.auth.model.value import AccountTransferId, IdentificationId
from fedauth.domain.shared.model.aggregate import Aggregate


class AccountTransfer(Aggregate):
    """Short-lived hand-off from one flow to the other.

    Created when an external identity resolves to the opposite flow from the
    one requested (sign-in without an account, sign-up with an existing one).
    The client picks it up to continue as the other flow, carrying the
    identification(s) to attach once that flow completes.
    """

    id: AccountTransferId
    instance_id: str
    identification_id: IdentificationId
    to_link_identification_id: IdentificationId | None = None
    expire_at: datetime
    created_at: datetime

    @classmethod
    def create(
        cls,
        instance_id: str,
        identification_id: IdentificationId,
        ttl: timedelta,
        to_link_identification_id: IdentificationId | None = None,
    ) -> "AccountTransfer":
        now = datetime.now(UTC)
        return cls(
            id=AccountTransferId.generate(),
            instance_id=instance_id,
            identification_id=identification_id,
            to_link_identification_id=to_link_identification_id,
            expire_at=now + ttl,
            created_at=now,
        )

    def expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) > self.expire_at
