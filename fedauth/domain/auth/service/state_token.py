"""State token codec: signs and verifies the OAuth flow context."""

import logging
from datetime import UTC, datetime, timedelta

import jwt
from pydantic import ValidationError as PydanticValidationError

from fedauth.config import InstanceConfig, JwtConfig
from fedauth.domain.auth.error import (
    ClientMismatch,
    StateTokenExpired,
    StateTokenInvalid,
    StateTokenSignatureInvalid,
)
from fedauth.domain.auth.model.client import Client
from fedauth.domain.auth.model.oauth import OAuthStateToken
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)

# Filled in during the callback, never part of the signed claims.
_UNSIGNED_FIELDS = {"oauth_exchange_code", "oauth1_access_token"}


class StateTokenService(Service):
    """Encode and decode the signed state token stored on a Verification.

    - Tokens are JWTs signed with the instance key (PyJWT)
    - ``exp`` bounds the whole OAuth round trip
    - verify_client binds a browser token to the client that started the flow
    """

    _config: JwtConfig

    def encode(self, claims: OAuthStateToken, ttl: timedelta) -> str:
        """Sign ``claims`` into a compact JWT valid for ``ttl``."""
        now = datetime.now(UTC)
        payload = claims.model_dump(mode="json", exclude=_UNSIGNED_FIELDS, exclude_none=True)
        payload["iat"] = int(now.timestamp())
        payload["exp"] = int((now + ttl).timestamp())
        return jwt.encode(payload, self._config.signing_key, algorithm=self._config.algorithm)

    def decode(self, token: str) -> OAuthStateToken:
        """Verify the signature and expiry of ``token`` and return its claims.

        Raises:
            StateTokenExpired: If ``exp`` has passed
            StateTokenSignatureInvalid: If the signature does not verify
            StateTokenInvalid: If the token is malformed or the claims are unusable
        """
        try:
            payload = jwt.decode(
                token,
                self._config.public_key,
                algorithms=[self._config.algorithm],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise StateTokenExpired("State token has expired") from e
        except jwt.InvalidSignatureError as e:
            raise StateTokenSignatureInvalid("State token signature is invalid") from e
        except jwt.InvalidTokenError as e:
            raise StateTokenInvalid(f"State token is invalid: {e}") from e

        payload.pop("iat", None)
        payload.pop("exp", None)
        try:
            return OAuthStateToken.model_validate(payload)
        except PydanticValidationError as e:
            raise StateTokenInvalid("State token claims are invalid") from e

    def verify_client(
        self,
        claims: OAuthStateToken,
        client: Client | None,
        instance: InstanceConfig,
    ) -> None:
        """Check that the client calling back is the one that started the flow.

        Native flows complete in a system browser that never carries the
        client cookie, so they are not checked at all. A missing client is
        tolerated outside production, where third-party cookies are commonly
        blocked on the FAPI domain.

        Raises:
            ClientMismatch: If the token was issued to another client, or no
                client is present in production
        """
        if claims.is_native():
            return

        if client is None:
            if instance.is_production():
                raise ClientMismatch("No client present for a browser OAuth callback")
            logger.debug("No client on OAuth callback, allowed in %s", instance.environment)
            return

        if claims.client_id != str(client.id):
            raise ClientMismatch(
                f"State token issued to client {claims.client_id}, callback from {client.id}"
            )
