"""External account: provider-sourced profile attached to an OAuth identification."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from fedauth.domain.auth.model.value import ExternalAccountId, IdentificationId
from fedauth.domain.shared.model.aggregate import Aggregate


class OAuthUser(BaseModel):
    """Normalized profile returned by a provider after token exchange."""

    provider_id: str
    provider_user_id: str
    email_address: str = ""
    email_address_verified: bool = False
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    avatar_url: str = ""
    access_token: str = ""
    refresh_token: str = ""
    access_token_expiration: datetime | None = None
    oauth1_access_token_secret: str = ""
    metadata: dict[str, Any] | None = None
    token_label: str = ""

    def email_address_provided(self) -> bool:
        return self.email_address != ""


class ExternalAccount(Aggregate):
    id: ExternalAccountId
    instance_id: str
    identification_id: IdentificationId
    provider: str
    provider_user_id: str
    email_address: str = ""
    first_name: str = ""
    last_name: str = ""
    username: str | None = None
    avatar_url: str = ""
    approved_scopes: str = ""
    access_token: str = ""
    refresh_token: str | None = None
    access_token_expiration: datetime | None = None
    oauth1_access_token_secret: str | None = None
    public_metadata: dict[str, Any] = {}
    label: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_oauth_user(
        cls,
        instance_id: str,
        identification_id: IdentificationId,
        oauth_user: OAuthUser,
        approved_scopes: str,
    ) -> "ExternalAccount":
        account = cls(
            id=ExternalAccountId.generate(),
            instance_id=instance_id,
            identification_id=identification_id,
            provider=oauth_user.provider_id,
            provider_user_id=oauth_user.provider_user_id,
            created_at=datetime.now(UTC),
        )
        account.apply_profile(oauth_user, approved_scopes)
        return account

    def apply_profile(self, oauth_user: OAuthUser, approved_scopes: str) -> None:
        """Overwrite profile and credential columns from a fresh provider response.

        Empty optional credentials never clobber stored ones.
        """
        self.provider_user_id = oauth_user.provider_user_id
        self.email_address = oauth_user.email_address
        self.first_name = oauth_user.first_name
        self.last_name = oauth_user.last_name
        self.avatar_url = oauth_user.avatar_url
        self.approved_scopes = approved_scopes
        if oauth_user.username:
            self.username = oauth_user.username
        self.apply_tokens(oauth_user)
        if oauth_user.metadata is not None:
            self.public_metadata = oauth_user.metadata
        if oauth_user.token_label:
            self.label = oauth_user.token_label
        self.updated_at = datetime.now(UTC)

    def apply_tokens(self, oauth_user: OAuthUser) -> None:
        if oauth_user.access_token:
            self.access_token = oauth_user.access_token
        if oauth_user.refresh_token:
            self.refresh_token = oauth_user.refresh_token
        if oauth_user.access_token_expiration is not None:
            self.access_token_expiration = oauth_user.access_token_expiration
        if oauth_user.oauth1_access_token_secret:
            self.oauth1_access_token_secret = oauth_user.oauth1_access_token_secret
