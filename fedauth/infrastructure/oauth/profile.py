"""Normalization of provider userinfo payloads into OAuthUser profiles."""

from typing import Any

from fedauth.domain.auth.error import FetchUserError
from fedauth.domain.auth.model.external_account import OAuthUser

# Userinfo keys tried in order; OIDC claims first, then common REST variants.
_ID_KEYS = ("sub", "id", "user_id", "id_str")
_FIRST_NAME_KEYS = ("given_name", "first_name")
_LAST_NAME_KEYS = ("family_name", "last_name")
_USERNAME_KEYS = ("preferred_username", "login", "username", "screen_name")
_AVATAR_KEYS = ("picture", "avatar_url", "profile_image_url_https", "profile_image_url")


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return str(value)
    return ""


def _is_true(value: Any) -> bool:
    # Some providers send the claim as a string
    return value is True or value == "true"


def _split_name(name: str) -> tuple[str, str]:
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


def primary_email(emails: list[dict[str, Any]]) -> tuple[str, bool]:
    """Pick the address to use from a provider's email listing.

    Prefers the primary address, then any verified one.
    """
    for entry in emails:
        if entry.get("primary") and entry.get("email"):
            return entry["email"], bool(entry.get("verified"))
    for entry in emails:
        if entry.get("verified") and entry.get("email"):
            return entry["email"], True
    return "", False


def profile_from_userinfo(provider_id: str, data: dict[str, Any]) -> OAuthUser:
    """Map a userinfo response onto OAuthUser.

    Raises:
        FetchUserError: If the payload carries no stable user id
    """
    user_id = _first(data, _ID_KEYS)
    if not user_id:
        raise FetchUserError(f"{provider_id} userinfo response has no user id")

    first_name = _first(data, _FIRST_NAME_KEYS)
    last_name = _first(data, _LAST_NAME_KEYS)
    if not first_name and not last_name and data.get("name"):
        first_name, last_name = _split_name(str(data["name"]))

    return OAuthUser(
        provider_id=provider_id,
        provider_user_id=user_id,
        email_address=str(data.get("email") or ""),
        email_address_verified=_is_true(data.get("email_verified"))
        or _is_true(data.get("verified_email")),
        first_name=first_name,
        last_name=last_name,
        username=_first(data, _USERNAME_KEYS),
        avatar_url=_first(data, _AVATAR_KEYS),
        metadata=None,
    )
