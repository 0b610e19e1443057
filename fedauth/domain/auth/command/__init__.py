"""Auth domain commands."""

from .delete_identification import (
    DeleteIdentification,
    DeleteIdentificationHandler,
    DeleteIdentificationResult,
)
from .oauth_callback import (
    HandleOAuthCallback,
    OAuthCallbackHandler,
    RedirectResult,
    ResponseCookie,
)
from .set_client_cookie import SetClientCookie, SetClientCookieHandler

__all__ = [
    "DeleteIdentification",
    "DeleteIdentificationHandler",
    "DeleteIdentificationResult",
    "HandleOAuthCallback",
    "OAuthCallbackHandler",
    "RedirectResult",
    "ResponseCookie",
    "SetClientCookie",
    "SetClientCookieHandler",
]
