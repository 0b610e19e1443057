"""User-facing API errors raised by the OAuth callback and flow finalizers.

Each error carries a stable ``code`` and an HTTP ``status``. Errors raised
after the callback has consumed its verification are not returned as a
response body: the controller serializes ``to_payload()`` onto the
verification and redirects, so the frontend can fetch it out of band.
"""

from typing import TYPE_CHECKING, Any, ClassVar

from fedauth.domain.shared.error import DomainError

if TYPE_CHECKING:
    from fedauth.domain.auth.model.account_transfer import AccountTransfer


class ApiError(DomainError):
    """Base class for errors with a stable public code."""

    default_code: ClassVar[str] = "api_error"
    status: ClassVar[int] = 400
    default_message: ClassVar[str] = "Request could not be processed"

    def __init__(
        self,
        message: str | None = None,
        *,
        long_message: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or self.default_message, code=self.default_code)
        self.long_message = long_message or self.message
        self.meta = meta or {}

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "long_message": self.long_message,
        }
        if self.meta:
            payload["meta"] = self.meta
        return payload


class InvalidAuthorization(ApiError):
    default_code = "authorization_invalid"
    status = 403
    default_message = "Unauthorized request"
    # Never says which check failed.


class InvalidOAuthCallback(ApiError):
    default_code = "oauth_callback_invalid"
    status = 422
    default_message = "Invalid OAuth callback"


class OAuthInvalidRedirectURI(ApiError):
    default_code = "redirect_uri_mismatch"
    status = 422
    default_message = "The redirect URI is not registered with the OAuth provider"


class UnsupportedOAuthProvider(ApiError):
    default_code = "oauth_unsupported_provider"
    status = 422
    default_message = "OAuth provider is not enabled for this instance"


class NonAuthenticatableOAuthProvider(ApiError):
    default_code = "oauth_non_authenticatable_provider"
    status = 422
    default_message = "OAuth provider cannot be used to sign in or sign up"


class OAuthAccessDenied(ApiError):
    default_code = "oauth_access_denied"
    status = 403
    default_message = "You did not grant access to your account"


class OAuthTokenExchangeError(ApiError):
    default_code = "oauth_token_exchange_error"
    status = 422
    default_message = "Unable to complete the OAuth token exchange"


class OAuthFetchUserError(ApiError):
    default_code = "oauth_fetch_user_error"
    status = 422
    default_message = "Unable to retrieve your account information from the provider"


class AccountTransferError(ApiError):
    """A flow that must continue as the opposite flow.

    Carries the AccountTransfer created for the hand-off; it is committed
    together with the rest of the transaction.
    """

    def __init__(self, account_transfer: "AccountTransfer | None" = None) -> None:
        super().__init__()
        self.account_transfer = account_transfer


class ExternalAccountNotFound(AccountTransferError):
    default_code = "external_account_not_found"
    status = 422
    default_message = "The External Account was not found."


class IdentificationExists(AccountTransferError):
    default_code = "external_account_exists"
    status = 422
    default_message = "This account already exists. Please sign in instead."


class IdentificationClaimed(ApiError):
    default_code = "identification_claimed"
    status = 422
    default_message = "Identification claimed by another user"


class AlreadySignedIn(ApiError):
    default_code = "identifier_already_signed_in"
    status = 422
    default_message = "You're already signed in"

    def __init__(self, session_id: str) -> None:
        super().__init__(meta={"session_id": session_id})


class IdentifierNotAllowedAccess(ApiError):
    default_code = "not_allowed_access"
    status = 403
    default_message = "You do not have permission to access this instance"

    def __init__(self, identifier: str) -> None:
        super().__init__(meta={"identifiers": [identifier]})


class SignedOut(ApiError):
    default_code = "signed_out"
    status = 401
    default_message = "You are signed out"


class OAuthAccountAlreadyConnected(ApiError):
    default_code = "oauth_account_already_connected"
    status = 422
    default_message = "Another account is already connected for this provider"


class OAuthIdentificationClaimed(ApiError):
    default_code = "oauth_identification_claimed"
    status = 422
    default_message = "The email address of this account is claimed by another user"


class RedirectURLMismatch(ApiError):
    default_code = "invalid_redirect_url"
    status = 422
    default_message = "The redirect URL is not allowed for this instance"

    def __init__(self, redirect_url: str) -> None:
        super().__init__(meta={"redirect_url": redirect_url})


class UserLocked(ApiError):
    default_code = "user_locked"
    status = 403
    default_message = "Your account is locked"

    def __init__(self, expires_in_seconds: int | None) -> None:
        super().__init__(meta={"lockout_expires_in_seconds": expires_in_seconds})


class ResourceNotFound(ApiError):
    default_code = "resource_not_found"
    status = 404
    default_message = "Resource not found"


class SessionCreationNotAllowed(ApiError):
    default_code = "session_creation_not_allowed"
    status = 409
    default_message = "Cannot create a new session while impersonating a user"


class InvalidClientState(ApiError):
    default_code = "client_state_invalid"
    status = 422
    default_message = "The client is not in a valid state for this action"


class LastIdentificationDeletion(ApiError):
    default_code = "last_identification_deletion_failed"
    status = 403
    default_message = "You cannot delete your last identification"


class ExternalAccountEmailAddressVerificationRequired(ApiError):
    default_code = "external_account_email_address_verification_required"
    status = 422
    default_message = "Verification of the external account's email address is required"


class InvalidCSRFToken(ApiError):
    default_code = "invalid_csrf_token"
    status = 403
    default_message = "Invalid CSRF token"


class Unexpected(ApiError):
    default_code = "internal_clerk_error"
    status = 500
    default_message = "Oops, an unexpected error occurred"


def is_internal(error: BaseException) -> bool:
    """True for anything that must reach the user only as ``Unexpected``."""
    return not isinstance(error, ApiError) or isinstance(error, Unexpected)


# --- State token / provider failures (internal, never shown verbatim) ---


class StateTokenError(DomainError):
    """The signed state token could not be trusted."""


class StateTokenExpired(StateTokenError):
    pass


class StateTokenSignatureInvalid(StateTokenError):
    pass


class StateTokenInvalid(StateTokenError):
    """Malformed token or claims that do not describe a flow."""


class ClientMismatch(StateTokenError):
    """The token was issued to a different client than the one calling back."""


class TokenExchangeError(DomainError):
    """Provider rejected the code/verifier exchange."""


class FetchUserError(DomainError):
    """Provider profile could not be fetched or is unusable."""
