"""SQLAlchemy repository implementations for identifications and external accounts."""

import logging

from sqlalchemy import case, delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.auth.model.external_account import ExternalAccount
from fedauth.domain.auth.model.identification import Identification
from fedauth.domain.auth.model.value import (
    EMAIL_ADDRESS,
    ExternalAccountId,
    IdentificationId,
    IdentificationStatus,
    UserId,
    VerificationId,
)
from fedauth.domain.auth.port.repository import (
    ExternalAccountRepository,
    IdentificationRepository,
)
from fedauth.domain.shared.error import UniqueIdentificationViolation
from fedauth.infrastructure.persistence.mappers import model_to_row, row_to_model, upsert
from fedauth.infrastructure.persistence.tables import (
    external_accounts_table,
    identifications_table,
)

logger = logging.getLogger(__name__)

CLAIMED_STATUSES = (IdentificationStatus.VERIFIED.value, IdentificationStatus.RESERVED.value)

_ident = identifications_table.c
_ext = external_accounts_table.c


class SQLAlchemyIdentificationRepository(IdentificationRepository):
    """SQLAlchemy implementation of IdentificationRepository.

    Uniqueness of claimed identifiers is enforced by the partial unique
    index ``uq_identifications_claimed``; a violation surfaces from save()
    as UniqueIdentificationViolation and leaves the transaction for the
    caller to roll back.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, identification_id: IdentificationId) -> Identification | None:
        stmt = select(identifications_table).where(_ident.id == str(identification_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Identification, row) if row else None

    async def save(self, identification: Identification) -> None:
        try:
            await upsert(self.session, identifications_table, model_to_row(identification))
        except IntegrityError as e:
            logger.info(
                "Identification %s conflicts with a claimed %s identification",
                identification.id,
                identification.type,
            )
            raise UniqueIdentificationViolation() from e

    async def delete(self, identification_id: IdentificationId) -> None:
        stmt = delete(identifications_table).where(_ident.id == str(identification_id))
        await self.session.execute(stmt)
        await self.session.flush()

    async def find_latest_claimed_by_provider_user_id(
        self, provider: str, provider_user_id: str
    ) -> Identification | None:
        stmt = (
            select(identifications_table)
            .join(external_accounts_table, _ext.identification_id == _ident.id)
            .where(
                _ext.provider == provider,
                _ext.provider_user_id == provider_user_id,
                _ident.type == provider,
                _ident.status.in_(CLAIMED_STATUSES),
            )
            .order_by(_ident.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Identification, row) if row else None

    async def find_claimed_email(self, email_address: str) -> Identification | None:
        verified_first = case((_ident.status == IdentificationStatus.VERIFIED.value, 0), else_=1)
        stmt = (
            select(identifications_table)
            .where(
                _ident.type == EMAIL_ADDRESS,
                _ident.identifier == email_address.lower(),
                _ident.status.in_(CLAIMED_STATUSES),
            )
            .order_by(verified_first, _ident.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Identification, row) if row else None

    async def find_by_identifier_and_user(
        self, identifier: str, type: str, user_id: UserId
    ) -> Identification | None:
        if type == EMAIL_ADDRESS:
            identifier = identifier.lower()
        stmt = (
            select(identifications_table)
            .where(
                _ident.identifier == identifier,
                _ident.type == type,
                _ident.user_id == str(user_id),
            )
            .order_by(_ident.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Identification, row) if row else None

    async def find_by_verification_id(
        self, verification_id: VerificationId
    ) -> Identification | None:
        stmt = select(identifications_table).where(
            _ident.verification_id == str(verification_id)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(Identification, row) if row else None

    async def list_by_user(self, user_id: UserId) -> list[Identification]:
        stmt = (
            select(identifications_table)
            .where(_ident.user_id == str(user_id))
            .order_by(_ident.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return [row_to_model(Identification, row) for row in result.mappings().all()]

    async def list_by_ids(self, ids: list[IdentificationId]) -> list[Identification]:
        if not ids:
            return []
        stmt = select(identifications_table).where(_ident.id.in_([str(i) for i in ids]))
        result = await self.session.execute(stmt)
        return [row_to_model(Identification, row) for row in result.mappings().all()]

    async def list_linked_to(self, target_id: IdentificationId) -> list[Identification]:
        stmt = select(identifications_table).where(
            _ident.target_identification_id == str(target_id)
        )
        result = await self.session.execute(stmt)
        return [row_to_model(Identification, row) for row in result.mappings().all()]

    async def exists_claimed_by_other(self, identification: Identification) -> bool:
        stmt = (
            select(_ident.id)
            .where(
                _ident.id != str(identification.id),
                _ident.identifier == identification.identifier,
                _ident.type == identification.type,
                _ident.status.in_(CLAIMED_STATUSES),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.first() is not None


class SQLAlchemyExternalAccountRepository(ExternalAccountRepository):
    """SQLAlchemy implementation of ExternalAccountRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, external_account_id: ExternalAccountId) -> ExternalAccount | None:
        stmt = select(external_accounts_table).where(_ext.id == str(external_account_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(ExternalAccount, row) if row else None

    async def save(self, account: ExternalAccount) -> None:
        row = model_to_row(account)
        existing = await self.get(account.id)

        if existing:
            stmt = update(external_accounts_table).where(_ext.id == row["id"]).values(**row)
        else:
            stmt = insert(external_accounts_table).values(**row)

        await self.session.execute(stmt)
        await self.session.flush()

    async def find_latest_by_provider_user_id(
        self, provider: str, provider_user_id: str
    ) -> ExternalAccount | None:
        stmt = (
            select(external_accounts_table)
            .where(_ext.provider == provider, _ext.provider_user_id == provider_user_id)
            .order_by(_ext.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(ExternalAccount, row) if row else None

    async def find_by_identification_id(
        self, identification_id: IdentificationId
    ) -> ExternalAccount | None:
        stmt = (
            select(external_accounts_table)
            .where(_ext.identification_id == str(identification_id))
            .order_by(_ext.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(ExternalAccount, row) if row else None

    async def find_verified_by_user_and_provider(
        self, user_id: UserId, provider: str
    ) -> ExternalAccount | None:
        stmt = (
            select(external_accounts_table)
            .join(identifications_table, _ident.id == _ext.identification_id)
            .where(
                _ident.user_id == str(user_id),
                _ident.status == IdentificationStatus.VERIFIED.value,
                _ext.provider == provider,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(ExternalAccount, row) if row else None
