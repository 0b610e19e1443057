"""User aggregate for the auth domain."""

from datetime import UTC, datetime, timedelta

from fedauth.domain.auth.model.value import IdentificationId, UserId
from fedauth.domain.shared.model.aggregate import Aggregate


class User(Aggregate):
    """A user of the instance.

    Users are created when a sign-up converts. A user may own several
    identifications (emails, OAuth links, SAML links).

    Invariants:
    - `id` is immutable after creation
    - a user always keeps at least one identification
    """

    id: UserId
    instance_id: str
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    primary_email_address_id: IdentificationId | None = None
    banned: bool = False
    two_factor_enabled: bool = False
    password_enabled: bool = False
    requires_new_password: bool = False
    failed_verification_attempts: int = 0
    locked_at: datetime | None = None
    last_sign_in_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        instance_id: str,
        first_name: str | None = None,
        last_name: str | None = None,
        username: str | None = None,
        avatar_url: str | None = None,
    ) -> "User":
        return cls(
            id=UserId.generate(),
            instance_id=instance_id,
            first_name=first_name,
            last_name=last_name,
            username=username,
            avatar_url=avatar_url,
            created_at=datetime.now(UTC),
        )

    def is_locked(self, duration: timedelta, now: datetime | None = None) -> bool:
        if self.locked_at is None:
            return False
        return (now or datetime.now(UTC)) < self.locked_at + duration

    def lockout_expires_in(self, duration: timedelta, now: datetime | None = None) -> int | None:
        if self.locked_at is None:
            return None
        remaining = self.locked_at + duration - (now or datetime.now(UTC))
        return max(int(remaining.total_seconds()), 0)

    def reset_failed_verification_attempts(self) -> None:
        self.failed_verification_attempts = 0
        self.locked_at = None
        self.updated_at = datetime.now(UTC)
