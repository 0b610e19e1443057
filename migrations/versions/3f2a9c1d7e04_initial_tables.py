"""initial_tables

Revision ID: 3f2a9c1d7e04
Revises:
Create Date: 2026-10-19 10:12:41.204417

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7e04"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CLAIMED = "status IN ('verified', 'reserved')"


def upgrade() -> None:
    """Upgrade schema."""
    # USERS
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("primary_email_address_id", sa.String(), nullable=True),
        sa.Column("banned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "two_factor_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "password_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "requires_new_password", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "failed_verification_attempts",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sign_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # CLIENTS
    op.create_table(
        "clients",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("rotating_token", sa.String(128), nullable=False),
        sa.Column("rotating_token_nonce", sa.String(128), nullable=True),
        sa.Column("sign_in_id", sa.String(), nullable=True),
        sa.Column("sign_up_id", sa.String(), nullable=True),
        sa.Column("to_sign_in_account_transfer_id", sa.String(), nullable=True),
        sa.Column("to_sign_up_account_transfer_id", sa.String(), nullable=True),
        sa.Column(
            "supports_unverified_email_flow",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # SESSIONS
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("expire_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("abandon_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("touched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor", sa.JSON(), nullable=True),
        sa.Column("active_organization_id", sa.String(), nullable=True),
        sa.Column("replacement_session_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_sessions_client_id", "sessions", ["client_id"])
    op.create_index("idx_sessions_user_status", "sessions", ["user_id", "status"])

    # SIGN INS
    op.create_table(
        "sign_ins",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=False),
        sa.Column("identification_id", sa.String(), nullable=True),
        sa.Column("to_link_identification_id", sa.String(), nullable=True),
        sa.Column("first_factor_current_verification_id", sa.String(), nullable=True),
        sa.Column("first_factor_success_verification_id", sa.String(), nullable=True),
        sa.Column("second_factor_success_verification_id", sa.String(), nullable=True),
        sa.Column(
            "requires_new_password", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("created_session_id", sa.String(), nullable=True),
        sa.Column("saml_connection_id", sa.String(), nullable=True),
        sa.Column("saml_identifier", sa.String(), nullable=True),
        sa.Column("abandon_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_sign_ins_first_factor_success",
        "sign_ins",
        ["first_factor_success_verification_id"],
    )

    # SIGN UPS
    op.create_table(
        "sign_ups",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=False),
        sa.Column("email_address_id", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("successful_external_account_identification_id", sa.String(), nullable=True),
        sa.Column("created_user_id", sa.String(), nullable=True),
        sa.Column("created_session_id", sa.String(), nullable=True),
        sa.Column("saml_connection_id", sa.String(), nullable=True),
        sa.Column("saml_identifier", sa.String(), nullable=True),
        sa.Column("required_fields", sa.JSON(), nullable=False),
        sa.Column("abandon_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    # VERIFICATIONS
    op.create_table(
        "verifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("strategy", sa.String(64), nullable=False),
        sa.Column("nonce", sa.String(128), nullable=True),
        sa.Column("token", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("expire_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.JSON(), nullable=True),
        sa.Column("account_transfer_id", sa.String(), nullable=True),
        sa.Column("identification_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_verifications_nonce", "verifications", ["nonce"], unique=True)

    # IDENTIFICATIONS
    op.create_table(
        "identifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("identifier", sa.String(320), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("verification_id", sa.String(), nullable=True),
        sa.Column("external_account_id", sa.String(), nullable=True),
        sa.Column("target_identification_id", sa.String(), nullable=True),
        sa.Column("requires_verification", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_identifications_claimed",
        "identifications",
        ["instance_id", "identifier", "type"],
        unique=True,
        sqlite_where=sa.text(CLAIMED),
        postgresql_where=sa.text(CLAIMED),
    )
    op.create_index("idx_identifications_user_id", "identifications", ["user_id"])
    op.create_index(
        "idx_identifications_verification_id", "identifications", ["verification_id"]
    )
    op.create_index(
        "idx_identifications_target", "identifications", ["target_identification_id"]
    )

    # EXTERNAL ACCOUNTS
    op.create_table(
        "external_accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("identification_id", sa.String(), nullable=False),
        sa.Column("provider", sa.String(64), nullable=False),
        sa.Column("provider_user_id", sa.String(255), nullable=False),
        sa.Column("email_address", sa.String(320), nullable=False, server_default=sa.text("''")),
        sa.Column("first_name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("last_name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("approved_scopes", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("access_token", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("access_token_expiration", sa.DateTime(timezone=True), nullable=True),
        sa.Column("oauth1_access_token_secret", sa.Text(), nullable=True),
        sa.Column("public_metadata", sa.JSON(), nullable=False),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_external_accounts_provider_user",
        "external_accounts",
        ["provider", "provider_user_id"],
    )
    op.create_index(
        "idx_external_accounts_identification", "external_accounts", ["identification_id"]
    )

    # ACCOUNT TRANSFERS
    op.create_table(
        "account_transfers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("identification_id", sa.String(), nullable=False),
        sa.Column("to_link_identification_id", sa.String(), nullable=True),
        sa.Column("expire_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # SAML CONNECTIONS
    op.create_table(
        "saml_connections",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("idp_sso_url", sa.Text(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_saml_connections_domain", "saml_connections", ["domain"])

    # OAUTH1 REQUEST TOKENS
    op.create_table(
        "oauth1_request_tokens",
        sa.Column("nonce", sa.String(128), nullable=False),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("token_secret", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("nonce", "token"),
    )

    # EVENTS
    op.create_table(
        "events",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_events_type_created",
        "events",
        ["event_type", sa.text("created_at DESC")],
    )

    # DELIVERIES
    op.create_table(
        "deliveries",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("consumer_group", sa.String(128), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("routing_key", sa.String(128), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "consumer_group", name="uq_delivery_event_consumer"),
    )
    op.create_index("idx_deliveries_event", "deliveries", ["event_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("deliveries")
    op.drop_table("events")
    op.drop_table("oauth1_request_tokens")
    op.drop_table("saml_connections")
    op.drop_table("account_transfers")
    op.drop_table("external_accounts")
    op.drop_table("identifications")
    op.drop_table("verifications")
    op.drop_table("sign_ups")
    op.drop_table("sign_ins")
    op.drop_table("sessions")
    op.drop_table("clients")
    op.drop_table("users")
