"""Verification: one attempt to prove control of an external identity."""

from datetime import UTC, datetime, timedelta
from typing import Any

from fedauth.domain.auth.model.value import (
    AccountTransferId,
    IdentificationId,
    VerificationId,
)
from fedauth.domain.shared.model.aggregate import Aggregate

# OAuth callbacks may be consumed exactly once.
OAUTH_MAX_ATTEMPTS = 1


class Verification(Aggregate):
    """A single proof-of-control attempt.

    ``nonce`` is what the provider echoes back as ``state``; ``token`` is the
    signed state token holding the flow context. Status is not stored: it is
    derived by VerificationService from attempts, expiry, and whatever the
    verification has since been attached to.
    """

    id: VerificationId
    instance_id: str
    strategy: str  # Provider id ("oauth_google") or "saml"
    nonce: str | None = None
    token: str | None = None
    attempts: int = 0
    max_attempts: int | None = OAUTH_MAX_ATTEMPTS
    expire_at: datetime | None = None
    error: dict[str, Any] | None = None
    account_transfer_id: AccountTransferId | None = None
    identification_id: IdentificationId | None = None
    created_at: datetime

    @classmethod
    def create(
        cls,
        instance_id: str,
        strategy: str,
        *,
        nonce: str | None = None,
        token: str | None = None,
        ttl: timedelta | None = None,
        attempts: int = 0,
        max_attempts: int | None = OAUTH_MAX_ATTEMPTS,
        identification_id: IdentificationId | None = None,
    ) -> "Verification":
        now = datetime.now(UTC)
        return cls(
            id=VerificationId.generate(),
            instance_id=instance_id,
            strategy=strategy,
            nonce=nonce,
            token=token,
            attempts=attempts,
            max_attempts=max_attempts,
            expire_at=now + ttl if ttl is not None else None,
            identification_id=identification_id,
            created_at=now,
        )

    def failed(self) -> bool:
        return self.max_attempts is not None and self.attempts > self.max_attempts

    def expired(self, now: datetime | None = None) -> bool:
        if self.expire_at is None:
            return False
        return (now or datetime.now(UTC)) > self.expire_at
