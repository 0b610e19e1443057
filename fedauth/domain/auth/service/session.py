"""Session issuance and lifecycle."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fedauth.config import InstanceConfig, SessionConfig
from fedauth.domain.auth.error import InvalidAuthorization, SignedOut
from fedauth.domain.auth.event.events import SessionCreated
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import ClientId, SessionId, SessionStatus, UserId
from fedauth.domain.auth.port.repository import SessionRepository, UserRepository
from fedauth.domain.shared.outbox import Outbox
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)

# Sessions a client still "holds": shown in its session list, replaceable on sign-in.
_CURRENT_STATUSES = (SessionStatus.ACTIVE, SessionStatus.ENDED)


class SessionService(Service):
    """Creates sessions and moves them through their lifecycle.

    Sessions created inside the callback transaction start as
    ``pending_activation``; activate() runs after the transaction commits
    and is the only place a SessionCreated event is emitted for them.
    """

    _session_repo: SessionRepository
    _user_repo: UserRepository
    _outbox: Outbox
    _config: SessionConfig
    _instance: InstanceConfig

    async def create(
        self,
        user: User,
        client_id: ClientId,
        *,
        actor: dict[str, Any] | None = None,
        status: SessionStatus = SessionStatus.ACTIVE,
    ) -> Session:
        """Create a session for ``user`` on ``client_id``.

        Raises:
            InvalidAuthorization: If the user is banned
        """
        if user.banned:
            logger.info("Refusing session for banned user %s", user.id)
            raise InvalidAuthorization()

        now = datetime.now(UTC)
        latest = await self._session_repo.find_latest_by_user(user.id)

        if actor is not None:
            inactivity = timedelta(seconds=self._instance.transactional_ttl_seconds)
            expire_at = now + timedelta(seconds=self._config.actor_max_duration_seconds)
        else:
            inactivity = (
                timedelta(seconds=self._config.inactivity_timeout_seconds)
                if self._config.inactivity_timeout_seconds
                else None
            )
            expire_at = now + timedelta(seconds=self._config.lifetime_seconds)
        abandon_at = now + inactivity if inactivity is not None else expire_at

        session = Session(
            id=SessionId.generate(),
            instance_id=self._instance.id,
            client_id=client_id,
            user_id=user.id,
            status=status,
            expire_at=expire_at,
            abandon_at=min(abandon_at, expire_at),
            touched_at=now,
            actor=actor,
            active_organization_id=latest.active_organization_id if latest else None,
            created_at=now,
        )
        await self._session_repo.save(session)

        if actor is None:
            user.last_sign_in_at = now
            user.updated_at = now
            await self._user_repo.save(user)

        if status == SessionStatus.ACTIVE:
            await self._emit_created(session)

        logger.info(
            "Session created: session_id=%s, user_id=%s, client_id=%s, status=%s",
            session.id,
            user.id,
            client_id,
            status,
        )
        return session

    async def activate(self, session: Session) -> None:
        """Move a pending session to active and emit SessionCreated."""
        session.activate()
        await self._session_repo.save(session)
        await self._emit_created(session)

    async def list_current_by_client(self, client_id: ClientId) -> list[Session]:
        """Unexpired active or ended sessions of the client."""
        now = datetime.now(UTC)
        sessions = await self._session_repo.list_by_client(client_id)
        return [s for s in sessions if s.status in _CURRENT_STATUSES and s.expire_at > now]

    async def list_active_by_client(self, client_id: ClientId) -> list[Session]:
        now = datetime.now(UTC)
        sessions = await self._session_repo.list_by_client(client_id)
        return [s for s in sessions if s.is_active(now)]

    async def ensure_user_signed_in(self, user_id: UserId) -> list[Session]:
        """Return the user's active sessions.

        Raises:
            SignedOut: If the user has none
        """
        now = datetime.now(UTC)
        sessions = [s for s in await self._session_repo.list_active_by_user(user_id) if s.is_active(now)]
        if not sessions:
            raise SignedOut()
        return sessions

    async def remove_all(self, sessions: list[Session]) -> None:
        for session in sessions:
            if session.status in (SessionStatus.REMOVED, SessionStatus.REVOKED):
                continue
            session.remove()
            await self._session_repo.save(session)

    async def revoke_all_for_user(self, user_id: UserId) -> None:
        for session in await self._session_repo.list_active_by_user(user_id):
            session.revoke()
            await self._session_repo.save(session)
        logger.info("Revoked all sessions for user_id=%s", user_id)

    async def save(self, session: Session) -> None:
        await self._session_repo.save(session)

    async def end(self, session: Session) -> None:
        session.end()
        await self._session_repo.save(session)

    async def _emit_created(self, session: Session) -> None:
        await self._outbox.append(
            SessionCreated(
                session_id=str(session.id),
                user_id=str(session.user_id),
                client_id=str(session.client_id),
            )
        )
