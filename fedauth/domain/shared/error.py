"""Error hierarchy for FedAuth.

Error layers:
- FedAuthError: Base class for all FedAuth errors
- DomainError: Business rule violations, validation failures (4xx responses)
- InfrastructureError: System-level failures like storage/network issues (503 responses)

These errors are mapped to HTTP responses by the global exception handler in app.py.
"""


class FedAuthError(Exception):
    """Base class for all FedAuth errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors (business logic violations - typically 4xx)
# =============================================================================


class DomainError(FedAuthError):
    """Base class for domain/business errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class InvalidStateError(DomainError):
    """Operation not allowed in current state."""


class ConflictError(DomainError):
    """Resource already exists or version conflict."""


class UniqueIdentificationViolation(ConflictError):
    """A verified or reserved identification with the same identifier already exists."""

    def __init__(self, message: str = "Identification already claimed") -> None:
        super().__init__(message, code="unique_identification")


class AuthorizationError(DomainError):
    """User not authorized for this operation."""


# =============================================================================
# Infrastructure Errors (system-level failures - typically 503)
# =============================================================================


class InfrastructureError(FedAuthError):
    """Base class for infrastructure/system errors."""


class StorageUnavailableError(InfrastructureError):
    """Storage backend (database) is unavailable."""


class ExternalServiceError(InfrastructureError):
    """External service (identity provider, email checker) is unavailable or failed."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""
