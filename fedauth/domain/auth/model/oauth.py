"""Flow context carried through an OAuth round trip."""

from datetime import datetime

from pydantic import BaseModel

from fedauth.domain.auth.model.value import ClientType, SourceType


class OAuth1AccessToken(BaseModel):
    token: str
    token_secret: str


class OAuthStateToken(BaseModel):
    """Claims of the signed state token stored on the verification.

    Not persisted on its own: the pre-redirect step signs it into
    ``Verification.token`` and the callback decodes it exactly once. The
    ``oauth_exchange_code`` and ``oauth1_access_token`` fields are filled
    during the callback and never signed.
    """

    source_type: SourceType
    source_id: str
    oauth_provider: str
    client_id: str | None = None
    client_type: ClientType = ClientType.BROWSER
    scopes_requested: str = ""
    scopes_returned: str = ""
    redirect_url: str
    action_complete_redirect_url: str | None = None
    pkce_code_verifier: str | None = None
    oauth_exchange_code: str | None = None
    oauth1_access_token: OAuth1AccessToken | None = None

    def returned_scopes_sorted(self) -> str:
        return " ".join(sorted(s for s in self.scopes_returned.replace(",", " ").split() if s))

    def is_native(self) -> bool:
        return self.client_type == ClientType.NATIVE


class OAuth1RequestToken(BaseModel):
    """Request token fetched before redirecting to an OAuth 1.0a provider."""

    nonce: str
    token: str
    token_secret: str
    created_at: datetime

