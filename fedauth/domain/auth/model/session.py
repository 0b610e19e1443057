"""Session aggregate."""

from datetime import UTC, datetime
from typing import Any

from fedauth.domain.auth.model.value import ClientId, SessionId, SessionStatus, UserId
from fedauth.domain.shared.error import InvalidStateError
from fedauth.domain.shared.model.aggregate import Aggregate


class Session(Aggregate):
    """An authenticated session of a user on a client.

    Native and handshake flows create the session as ``pending_activation``
    and activate it in a second step, once the outer transaction has
    committed.
    """

    id: SessionId
    instance_id: str
    client_id: ClientId
    user_id: UserId
    status: SessionStatus
    expire_at: datetime
    abandon_at: datetime
    touched_at: datetime
    actor: dict[str, Any] | None = None
    active_organization_id: str | None = None
    replacement_session_id: SessionId | None = None
    created_at: datetime
    updated_at: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return (
            self.status == SessionStatus.ACTIVE
            and self.expire_at > now
            and self.abandon_at > now
        )

    def has_actor(self) -> bool:
        return self.actor is not None

    def activate(self) -> None:
        if self.status != SessionStatus.PENDING_ACTIVATION:
            raise InvalidStateError(
                f"Session {self.id} cannot be activated from status {self.status}"
            )
        self._transition(SessionStatus.ACTIVE)

    def end(self) -> None:
        self._transition(SessionStatus.ENDED)

    def remove(self) -> None:
        self._transition(SessionStatus.REMOVED)

    def revoke(self) -> None:
        self._transition(SessionStatus.REVOKED)

    def replace_with(self, session_id: SessionId) -> None:
        self.replacement_session_id = session_id
        self._transition(SessionStatus.REPLACED)

    def _transition(self, status: SessionStatus) -> None:
        self.status = status
        self.updated_at = datetime.now(UTC)
