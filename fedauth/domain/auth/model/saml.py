from datetime import datetime
from urllib.parse import urlencode, urlparse, urlunparse

from fedauth.domain.auth.model.value import SAMLConnectionId
from fedauth.domain.shared.model.aggregate import Aggregate


class SAMLConnection(Aggregate):
    """An enterprise IdP that owns every email address under ``domain``."""

    id: SAMLConnectionId
    instance_id: str
    name: str
    domain: str
    idp_sso_url: str
    active: bool = True
    created_at: datetime

    def sso_url(self, relay_state: str) -> str:
        """IdP SSO URL carrying ``relay_state`` so the ACS can find the verification."""
        parsed = urlparse(self.idp_sso_url)
        query = urlencode({"RelayState": relay_state})
        query = f"{parsed.query}&{query}" if parsed.query else query
        return urlunparse(parsed._replace(query=query))
