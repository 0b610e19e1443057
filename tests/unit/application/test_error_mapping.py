"""Unit tests for map_fedauth_error."""

from fedauth.application.api.v1.errors import map_fedauth_error
from fedauth.domain.auth.error import (
    AlreadySignedIn,
    IdentifierNotAllowedAccess,
    InvalidAuthorization,
    LastIdentificationDeletion,
    ResourceNotFound,
)
from fedauth.domain.shared.error import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)


class TestApiErrorEnvelope:
    """ApiErrors render in the {"errors": [...]} envelope with their own status."""

    def test_invalid_authorization(self):
        exc = map_fedauth_error(InvalidAuthorization())

        assert exc.status_code == 403
        assert exc.detail == {
            "errors": [
                {
                    "code": "authorization_invalid",
                    "message": "Unauthorized request",
                    "long_message": "Unauthorized request",
                }
            ]
        }

    def test_meta_is_included(self):
        exc = map_fedauth_error(AlreadySignedIn("sess_1"))

        assert exc.status_code == 422
        assert exc.detail["errors"][0]["meta"] == {"session_id": "sess_1"}

    def test_restricted_identifier(self):
        exc = map_fedauth_error(IdentifierNotAllowedAccess("jane@example.com"))

        assert exc.status_code == 403
        assert exc.detail["errors"][0]["code"] == "not_allowed_access"
        assert exc.detail["errors"][0]["meta"] == {"identifiers": ["jane@example.com"]}

    def test_status_codes(self):
        assert map_fedauth_error(ResourceNotFound()).status_code == 404
        assert map_fedauth_error(LastIdentificationDeletion()).status_code == 403


class TestDomainErrors:
    def test_not_found(self):
        exc = map_fedauth_error(NotFoundError("User not found", code="user_not_found"))

        assert exc.status_code == 404
        assert exc.detail == {"code": "user_not_found", "message": "User not found"}

    def test_validation_error_carries_field(self):
        exc = map_fedauth_error(ValidationError("bad value", field="state"))

        assert exc.status_code == 422
        assert exc.detail["field"] == "state"

    def test_conflict(self):
        assert map_fedauth_error(ConflictError("taken")).status_code == 409


class TestInfrastructureErrors:
    def test_external_service_is_unavailable(self):
        exc = map_fedauth_error(ExternalServiceError("provider down"))

        assert exc.status_code == 503
        assert exc.detail["code"] == "ExternalServiceError"
