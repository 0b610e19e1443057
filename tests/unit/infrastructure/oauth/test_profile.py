"""Unit tests for provider profile normalization."""

import pytest

from fedauth.domain.auth.error import FetchUserError
from fedauth.infrastructure.oauth.profile import primary_email, profile_from_userinfo


class TestProfileFromUserinfo:
    def test_oidc_claims(self):
        user = profile_from_userinfo(
            "oauth_google",
            {
                "sub": "1234",
                "email": "jane@example.com",
                "email_verified": True,
                "given_name": "Jane",
                "family_name": "Doe",
                "picture": "https://img.example.com/jane.png",
            },
        )

        assert user.provider_id == "oauth_google"
        assert user.provider_user_id == "1234"
        assert user.email_address_verified is True
        assert (user.first_name, user.last_name) == ("Jane", "Doe")
        assert user.avatar_url == "https://img.example.com/jane.png"

    def test_rest_style_payload(self):
        """Numeric ids and login/avatar_url keys, as GitHub returns them."""
        user = profile_from_userinfo(
            "oauth_github",
            {"id": 42, "login": "janedoe", "name": "Jane Q Doe", "avatar_url": "https://a/x"},
        )

        assert user.provider_user_id == "42"
        assert user.username == "janedoe"
        assert (user.first_name, user.last_name) == ("Jane", "Q Doe")
        assert user.email_address == ""
        assert user.email_address_verified is False

    def test_string_verified_claim(self):
        user = profile_from_userinfo("oauth_x", {"sub": "1", "verified_email": "true"})

        assert user.email_address_verified is True

    def test_missing_user_id(self):
        with pytest.raises(FetchUserError):
            profile_from_userinfo("oauth_google", {"email": "jane@example.com"})


class TestPrimaryEmail:
    def test_primary_wins(self):
        emails = [
            {"email": "old@example.com", "verified": True},
            {"email": "jane@example.com", "primary": True, "verified": True},
        ]

        assert primary_email(emails) == ("jane@example.com", True)

    def test_falls_back_to_verified(self):
        emails = [
            {"email": "unverified@example.com", "verified": False},
            {"email": "jane@example.com", "verified": True},
        ]

        assert primary_email(emails) == ("jane@example.com", True)

    def test_nothing_usable(self):
        assert primary_email([{"email": "x@example.com", "verified": False}]) == ("", False)
