"""SQLAlchemy repositories for OAuth 1.0a request tokens and SAML connections."""

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.domain.auth.model.oauth import OAuth1RequestToken
from fedauth.domain.auth.model.saml import SAMLConnection
from fedauth.domain.auth.port.repository import (
    OAuth1RequestTokenRepository,
    SAMLConnectionRepository,
)
from fedauth.infrastructure.persistence.mappers import model_to_row, row_to_model, upsert
from fedauth.infrastructure.persistence.tables import (
    oauth1_request_tokens_table,
    saml_connections_table,
)


class SQLAlchemyOAuth1RequestTokenRepository(OAuth1RequestTokenRepository):
    """Request tokens are keyed by (state nonce, token) and deleted once exchanged."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find(self, nonce: str, token: str) -> OAuth1RequestToken | None:
        stmt = select(oauth1_request_tokens_table).where(
            oauth1_request_tokens_table.c.nonce == nonce,
            oauth1_request_tokens_table.c.token == token,
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(OAuth1RequestToken, row) if row else None

    async def save(self, request_token: OAuth1RequestToken) -> None:
        stmt = insert(oauth1_request_tokens_table).values(**model_to_row(request_token))
        await self.session.execute(stmt)
        await self.session.flush()

    async def delete(self, nonce: str, token: str) -> None:
        stmt = delete(oauth1_request_tokens_table).where(
            oauth1_request_tokens_table.c.nonce == nonce,
            oauth1_request_tokens_table.c.token == token,
        )
        await self.session.execute(stmt)
        await self.session.flush()


class SQLAlchemySAMLConnectionRepository(SAMLConnectionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_active_by_domain(self, domain: str) -> SAMLConnection | None:
        stmt = (
            select(saml_connections_table)
            .where(
                saml_connections_table.c.domain == domain.lower(),
                saml_connections_table.c.active.is_(True),
            )
            .order_by(saml_connections_table.c.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_model(SAMLConnection, row) if row else None

    async def save(self, connection: SAMLConnection) -> None:
        row = model_to_row(connection)
        row["domain"] = row["domain"].lower()
        await upsert(self.session, saml_connections_table, row)
