"""SQLAlchemy table definitions - dialect-agnostic (works with SQLite and PostgreSQL)."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.types import JSON

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# USERS TABLE
# ============================================================================
users_table = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),  # UUID as string
    Column("instance_id", String, nullable=False),
    Column("first_name", String(255), nullable=True),
    Column("last_name", String(255), nullable=True),
    Column("username", String(255), nullable=True),
    Column("avatar_url", Text, nullable=True),
    Column("primary_email_address_id", String, nullable=True),
    Column("banned", Boolean, nullable=False, server_default=text("false")),
    Column("two_factor_enabled", Boolean, nullable=False, server_default=text("false")),
    Column("password_enabled", Boolean, nullable=False, server_default=text("false")),
    Column("requires_new_password", Boolean, nullable=False, server_default=text("false")),
    Column("failed_verification_attempts", Integer, nullable=False, server_default=text("0")),
    Column("locked_at", DateTime(timezone=True), nullable=True),
    Column("last_sign_in_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)


# ============================================================================
# CLIENTS TABLE
# ============================================================================
clients_table = Table(
    "clients",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("rotating_token", String(128), nullable=False),
    Column("rotating_token_nonce", String(128), nullable=True),
    Column("sign_in_id", String, nullable=True),
    Column("sign_up_id", String, nullable=True),
    Column("to_sign_in_account_transfer_id", String, nullable=True),
    Column("to_sign_up_account_transfer_id", String, nullable=True),
    Column(
        "supports_unverified_email_flow", Boolean, nullable=False, server_default=text("false")
    ),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)


# ============================================================================
# SESSIONS TABLE
# ============================================================================
sessions_table = Table(
    "sessions",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("client_id", String, ForeignKey("clients.id"), nullable=False),
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("status", String(32), nullable=False),  # SessionStatus as string
    Column("expire_at", DateTime(timezone=True), nullable=False),
    Column("abandon_at", DateTime(timezone=True), nullable=False),
    Column("touched_at", DateTime(timezone=True), nullable=False),
    Column("actor", JSON, nullable=True),
    Column("active_organization_id", String, nullable=True),
    Column("replacement_session_id", String, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

Index("idx_sessions_client_id", sessions_table.c.client_id)
Index("idx_sessions_user_status", sessions_table.c.user_id, sessions_table.c.status)


# ============================================================================
# SIGN INS / SIGN UPS TABLES
# ============================================================================
sign_ins_table = Table(
    "sign_ins",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("client_id", String, ForeignKey("clients.id"), nullable=False),
    Column("identification_id", String, nullable=True),
    Column("to_link_identification_id", String, nullable=True),
    Column("first_factor_current_verification_id", String, nullable=True),
    Column("first_factor_success_verification_id", String, nullable=True),
    Column("second_factor_success_verification_id", String, nullable=True),
    Column("requires_new_password", Boolean, nullable=False, server_default=text("false")),
    Column("created_session_id", String, nullable=True),
    Column("saml_connection_id", String, nullable=True),
    Column("saml_identifier", String, nullable=True),
    Column("abandon_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

Index(
    "idx_sign_ins_first_factor_success",
    sign_ins_table.c.first_factor_success_verification_id,
)

sign_ups_table = Table(
    "sign_ups",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("client_id", String, ForeignKey("clients.id"), nullable=False),
    Column("email_address_id", String, nullable=True),
    Column("first_name", String(255), nullable=True),
    Column("last_name", String(255), nullable=True),
    Column("username", String(255), nullable=True),
    Column("successful_external_account_identification_id", String, nullable=True),
    Column("created_user_id", String, nullable=True),
    Column("created_session_id", String, nullable=True),
    Column("saml_connection_id", String, nullable=True),
    Column("saml_identifier", String, nullable=True),
    Column("required_fields", JSON, nullable=False),
    Column("abandon_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)


# ============================================================================
# VERIFICATIONS TABLE
# ============================================================================
verifications_table = Table(
    "verifications",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("strategy", String(64), nullable=False),
    Column("nonce", String(128), nullable=True),
    Column("token", Text, nullable=True),  # Signed state token
    Column("attempts", Integer, nullable=False, server_default=text("0")),
    Column("max_attempts", Integer, nullable=True),
    Column("expire_at", DateTime(timezone=True), nullable=True),
    Column("error", JSON, nullable=True),
    Column("account_transfer_id", String, nullable=True),
    Column("identification_id", String, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("idx_verifications_nonce", verifications_table.c.nonce, unique=True)


# ============================================================================
# IDENTIFICATIONS TABLE
# ============================================================================
identifications_table = Table(
    "identifications",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("type", String(64), nullable=False),  # email_address, saml, oauth_<provider>
    Column("identifier", String(320), nullable=True),
    Column("status", String(32), nullable=False),  # IdentificationStatus as string
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
    Column("verification_id", String, nullable=True),
    Column("external_account_id", String, nullable=True),
    Column("target_identification_id", String, nullable=True),
    Column("requires_verification", Boolean, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

# One claimed identification per identifier and type
Index(
    "uq_identifications_claimed",
    identifications_table.c.instance_id,
    identifications_table.c.identifier,
    identifications_table.c.type,
    unique=True,
    sqlite_where=text("status IN ('verified', 'reserved')"),
    postgresql_where=text("status IN ('verified', 'reserved')"),
)
Index("idx_identifications_user_id", identifications_table.c.user_id)
Index("idx_identifications_verification_id", identifications_table.c.verification_id)
Index("idx_identifications_target", identifications_table.c.target_identification_id)


# ============================================================================
# EXTERNAL ACCOUNTS TABLE
# ============================================================================
external_accounts_table = Table(
    "external_accounts",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("identification_id", String, nullable=False),
    Column("provider", String(64), nullable=False),
    Column("provider_user_id", String(255), nullable=False),
    Column("email_address", String(320), nullable=False, server_default=text("''")),
    Column("first_name", String(255), nullable=False, server_default=text("''")),
    Column("last_name", String(255), nullable=False, server_default=text("''")),
    Column("username", String(255), nullable=True),
    Column("avatar_url", Text, nullable=False, server_default=text("''")),
    Column("approved_scopes", Text, nullable=False, server_default=text("''")),
    Column("access_token", Text, nullable=False, server_default=text("''")),
    Column("refresh_token", Text, nullable=True),
    Column("access_token_expiration", DateTime(timezone=True), nullable=True),
    Column("oauth1_access_token_secret", Text, nullable=True),
    Column("public_metadata", JSON, nullable=False),
    Column("label", String(255), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

Index(
    "idx_external_accounts_provider_user",
    external_accounts_table.c.provider,
    external_accounts_table.c.provider_user_id,
)
Index("idx_external_accounts_identification", external_accounts_table.c.identification_id)


# ============================================================================
# ACCOUNT TRANSFERS TABLE
# ============================================================================
account_transfers_table = Table(
    "account_transfers",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("identification_id", String, nullable=False),
    Column("to_link_identification_id", String, nullable=True),
    Column("expire_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


# ============================================================================
# SAML CONNECTIONS TABLE
# ============================================================================
saml_connections_table = Table(
    "saml_connections",
    metadata,
    Column("id", String, primary_key=True),
    Column("instance_id", String, nullable=False),
    Column("name", String(255), nullable=False),
    Column("domain", String(255), nullable=False),
    Column("idp_sso_url", Text, nullable=False),
    Column("active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("idx_saml_connections_domain", saml_connections_table.c.domain)


# ============================================================================
# OAUTH1 REQUEST TOKENS TABLE
# ============================================================================
oauth1_request_tokens_table = Table(
    "oauth1_request_tokens",
    metadata,
    Column("nonce", String(128), nullable=False),
    Column("token", String(255), nullable=False),
    Column("token_secret", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint("nonce", "token"),
)


# ============================================================================
# EVENTS TABLE (append-only log)
# ============================================================================
events_table = Table(
    "events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String(128), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index(
    "idx_events_type_created",
    events_table.c.event_type,
    events_table.c.created_at.desc(),
)


# ============================================================================
# DELIVERIES TABLE (per-consumer-group tracking)
# ============================================================================
deliveries_table = Table(
    "deliveries",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_id", String, ForeignKey("events.id"), nullable=False),
    Column("consumer_group", String(128), nullable=False),
    Column("status", String(32), nullable=False, server_default=text("'pending'")),
    Column("routing_key", String(128), nullable=True),
    Column("retry_count", Integer, nullable=False, server_default=text("0")),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("event_id", "consumer_group", name="uq_delivery_event_consumer"),
)

Index("idx_deliveries_event", deliveries_table.c.event_id)
