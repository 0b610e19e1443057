"""SQLAlchemy repository implementations for users, clients, sessions and flows."""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.auth.model.account_transfer import AccountTransfer
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.session import Session
from fedauth.domain.auth.model.sign_in import SignIn
from fedauth.domain.auth.model.sign_up import SignUp
from fedauth.domain.auth.model.user import User
from fedauth.domain.auth.model.value import (
    AccountTransferId,
    ClientId,
    SessionId,
    SessionStatus,
    SignInId,
    SignUpId,
    UserId,
    VerificationId,
)
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.repository import (
    AccountTransferRepository,
    ClientRepository,
    SessionRepository,
    SignInRepository,
    SignUpRepository,
    UserRepository,
    VerificationRepository,
)
from fedauth.infrastructure.persistence.mappers import model_to_row, row_to_model, upsert
from fedauth.infrastructure.persistence.tables import (
    account_transfers_table,
    clients_table,
    sessions_table,
    sign_ins_table,
    sign_ups_table,
    users_table,
    verifications_table,
)


class SQLAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: UserId) -> User | None:
        stmt = select(users_table).where(users_table.c.id == str(user_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(User, row) if row else None

    async def get_for_update(self, user_id: UserId) -> User | None:
        # FOR UPDATE is a no-op on SQLite, which serializes writers anyway
        stmt = select(users_table).where(users_table.c.id == str(user_id)).with_for_update()
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(User, row) if row else None

    async def save(self, user: User) -> None:
        await upsert(self.session, users_table, model_to_row(user))


class SQLAlchemyClientRepository(ClientRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, client_id: ClientId) -> Client | None:
        stmt = select(clients_table).where(clients_table.c.id == str(client_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Client, row) if row else None

    async def save(self, client: Client) -> None:
        await upsert(self.session, clients_table, model_to_row(client))


class SQLAlchemySessionRepository(SessionRepository):
    """SQLAlchemy implementation of SessionRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, session_id: SessionId) -> Session | None:
        stmt = select(sessions_table).where(sessions_table.c.id == str(session_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Session, row) if row else None

    async def save(self, session: Session) -> None:
        await upsert(self.session, sessions_table, model_to_row(session))

    async def list_by_client(self, client_id: ClientId) -> list[Session]:
        stmt = (
            select(sessions_table)
            .where(sessions_table.c.client_id == str(client_id))
            .order_by(sessions_table.c.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [row_to_model(Session, row) for row in result.mappings().all()]

    async def list_active_by_user(self, user_id: UserId) -> list[Session]:
        stmt = (
            select(sessions_table)
            .where(
                sessions_table.c.user_id == str(user_id),
                sessions_table.c.status == SessionStatus.ACTIVE.value,
            )
            .order_by(sessions_table.c.created_at.desc())
        )
        result = await self.session.execute(stmt)
        sessions = [row_to_model(Session, row) for row in result.mappings().all()]
        # Expiry is checked in Python so SQLite and PostgreSQL agree on timezones
        return [s for s in sessions if s.is_active()]

    async def find_latest_by_user(self, user_id: UserId) -> Session | None:
        stmt = (
            select(sessions_table)
            .where(sessions_table.c.user_id == str(user_id))
            .order_by(sessions_table.c.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Session, row) if row else None


class SQLAlchemySignInRepository(SignInRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, sign_in_id: SignInId) -> SignIn | None:
        stmt = select(sign_ins_table).where(sign_ins_table.c.id == str(sign_in_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(SignIn, row) if row else None

    async def save(self, sign_in: SignIn) -> None:
        await upsert(self.session, sign_ins_table, model_to_row(sign_in))

    async def find_by_success_verification_id(
        self, verification_id: VerificationId
    ) -> SignIn | None:
        stmt = select(sign_ins_table).where(
            sign_ins_table.c.first_factor_success_verification_id == str(verification_id)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(SignIn, row) if row else None


class SQLAlchemySignUpRepository(SignUpRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, sign_up_id: SignUpId) -> SignUp | None:
        stmt = select(sign_ups_table).where(sign_ups_table.c.id == str(sign_up_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(SignUp, row) if row else None

    async def save(self, sign_up: SignUp) -> None:
        await upsert(self.session, sign_ups_table, model_to_row(sign_up))


class SQLAlchemyAccountTransferRepository(AccountTransferRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, transfer_id: AccountTransferId) -> AccountTransfer | None:
        stmt = select(account_transfers_table).where(
            account_transfers_table.c.id == str(transfer_id)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(AccountTransfer, row) if row else None

    async def save(self, transfer: AccountTransfer) -> None:
        await upsert(self.session, account_transfers_table, model_to_row(transfer))


class SQLAlchemyVerificationRepository(VerificationRepository):
    """SQLAlchemy implementation of VerificationRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, verification_id: VerificationId) -> Verification | None:
        stmt = select(verifications_table).where(
            verifications_table.c.id == str(verification_id)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Verification, row) if row else None

    async def get_by_nonce(self, nonce: str) -> Verification | None:
        stmt = select(verifications_table).where(verifications_table.c.nonce == nonce)
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Verification, row) if row else None

    async def save(self, verification: Verification) -> None:
        await upsert(self.session, verifications_table, model_to_row(verification))

    async def increment_attempts(self, verification_id: VerificationId) -> int:
        """Add one attempt in a single UPDATE so concurrent callbacks see distinct counts."""
        stmt = (
            update(verifications_table)
            .where(verifications_table.c.id == str(verification_id))
            .values(attempts=verifications_table.c.attempts + 1)
            .returning(verifications_table.c.attempts)
        )
        result = await self.session.execute(stmt)
        attempts = result.scalar_one()
        await self.session.flush()
        return attempts
