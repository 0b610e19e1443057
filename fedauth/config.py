import logging
import os
import sys
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource


# =============================================================================
# Instance Configuration
# =============================================================================


class EnvironmentType(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class InstanceConfig(BaseModel):
    """The single instance this deployment serves."""

    id: str = "ins_default"
    environment: EnvironmentType = EnvironmentType.DEVELOPMENT
    domain: str = "localhost"  # Cookie domain; FAPI lives on clerk.<domain>
    fapi_url: str = "http://localhost:8000"
    allowed_redirect_urls: list[str] = []  # Checked only in production
    test_mode: bool = False  # Allows +clerk_test emails past the subaddress block
    transactional_ttl_seconds: int = 600  # Account transfers, actor inactivity

    def is_development_or_staging(self) -> bool:
        return self.environment in (EnvironmentType.DEVELOPMENT, EnvironmentType.STAGING)

    def is_production(self) -> bool:
        return self.environment == EnvironmentType.PRODUCTION


# =============================================================================
# Application Configuration
# =============================================================================


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by FEDAUTH_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get the value for a field from the YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML file."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        config_file = os.environ.get("FEDAUTH_CONFIG_FILE")
        if config_file:
            path = Path(config_file)
            if path.exists():
                return yaml.safe_load(path.read_text()) or {}
        return {}


class Server(BaseModel):
    """Server configuration (nested in Config, uses env_nested_delimiter)."""

    name: str = "FedAuth"
    version: str = "0.1.0"
    description: str = "OAuth/SAML callback handling and session issuance"


class DatabaseConfig(BaseModel):
    """Database configuration (nested in Config, uses env_nested_delimiter)."""

    url: str = "sqlite+aiosqlite:///~/.fedauth/fedauth.db"
    echo: bool = False
    auto_migrate: bool = True  # Auto-migrate for SQLite, manual for PostgreSQL


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter)."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def file(self) -> str | None:
        """Get log file path from FEDAUTH_LOG_FILE env var."""
        return os.environ.get("FEDAUTH_LOG_FILE")


class EventsConfig(BaseModel):
    """Outbox subscriptions: event type name -> consumer groups."""

    subscriptions: dict[str, list[str]] = {}


# =============================================================================
# Authentication Configuration
# =============================================================================


class JwtConfig(BaseModel):
    """Instance key material for state tokens, client cookies and handshakes."""

    signing_key: str = ""  # Must be set in production
    verification_key: str = ""  # Public half for asymmetric algorithms
    algorithm: str = "HS256"

    @property
    def public_key(self) -> str:
        return self.verification_key or self.signing_key


class SessionConfig(BaseModel):
    single_session_mode: bool = False
    lifetime_seconds: int = 7 * 24 * 3600
    inactivity_timeout_seconds: int | None = None
    actor_max_duration_seconds: int = 3600


class SignUpConfig(BaseModel):
    # Progressive sign-up asks for missing fields instead of failing the flow.
    progressive: bool = True


class RestrictionsConfig(BaseModel):
    allowlist_enabled: bool = False
    allowlist: list[str] = []  # Exact identifiers or "*@domain"
    blocklist_enabled: bool = False
    blocklist: list[str] = []
    block_email_subaddresses: bool = False
    block_disposable_email_domains: bool = False
    disposable_email_check_url: str = ""  # GET {url}?domain=..., returns {"disposable": bool}


class LockoutConfig(BaseModel):
    enabled: bool = False
    duration_seconds: int = 3600


class SAMLConfig(BaseModel):
    enabled: bool = False


class ProviderConfig(BaseModel):
    """One OAuth provider. The dict key in AuthConfig.providers is its id."""

    name: str = ""
    protocol: str = "oauth2"  # "oauth2" or "oauth1"
    client_id: str = ""
    client_secret: str = ""
    authenticatable: bool = True  # May be used for sign-in/sign-up, not just connect
    uses_pkce: bool = False
    scopes: list[str] = []
    authorize_url: str = ""
    token_url: str = ""  # OAuth2 token / OAuth1 access token endpoint
    request_token_url: str = ""  # OAuth1 only
    userinfo_url: str = ""
    emails_url: str = ""  # Optional secondary endpoint listing verified emails
    block_email_subaddresses: bool = False  # Checked on connect, in addition to restrictions


class CookieConfig(BaseModel):
    client: str = "__client"
    csrf: str = "__clerk_csrf"
    handshake: str = "__clerk_handshake"


class AuthConfig(BaseModel):
    """Authentication configuration."""

    jwt: JwtConfig = JwtConfig()
    session: SessionConfig = SessionConfig()
    sign_up: SignUpConfig = SignUpConfig()
    restrictions: RestrictionsConfig = RestrictionsConfig()
    lockout: LockoutConfig = LockoutConfig()
    saml: SAMLConfig = SAMLConfig()
    cookies: CookieConfig = CookieConfig()
    providers: dict[str, ProviderConfig] = {}
    callback_url: str = ""  # Defaults to {instance.fapi_url}/v1/oauth_callback


class Config(BaseSettings):
    # These are BaseModel, so env_nested_delimiter handles their env vars
    server: Server = Server()
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    instance: InstanceConfig = InstanceConfig()
    auth: AuthConfig = AuthConfig()
    events: EventsConfig = EventsConfig()

    model_config = {
        "env_prefix": "FEDAUTH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows FEDAUTH_DATABASE__URL override
    }

    @property
    def oauth_callback_url(self) -> str:
        return self.auth.callback_url or f"{self.instance.fapi_url}/v1/oauth_callback"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - FEDAUTH_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called early in application startup so all loggers pick up
    the configuration.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(config.level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("authlib").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)
