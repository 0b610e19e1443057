"""Centralized error transformation for API routes.

Maps FedAuth errors (domain and infrastructure) to HTTPException responses.
Errors with a stable public code render in the ``{"errors": [...]}`` envelope
the frontend SDKs read.
"""

from typing import Any

from fastapi import HTTPException

from fedauth.domain.auth.error import ApiError
from fedauth.domain.shared.error import (
    AuthorizationError,
    ConflictError,
    DomainError,
    FedAuthError,
    InfrastructureError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

DOMAIN_ERROR_STATUS_MAP: dict[type[DomainError], int] = {
    NotFoundError: 404,
    ValidationError: 422,
    InvalidStateError: 409,
    ConflictError: 409,
    AuthorizationError: 403,
}


def map_fedauth_error(error: FedAuthError) -> HTTPException:
    """Map a FedAuth error to an HTTPException.

    Args:
        error: The FedAuth error to map.

    Returns:
        HTTPException with appropriate status code and detail.
    """
    if isinstance(error, ApiError):
        return HTTPException(status_code=error.status, detail={"errors": [error.to_payload()]})

    detail: dict[str, Any] = {
        "code": error.code,
        "message": error.message,
    }

    if isinstance(error, InfrastructureError):
        return HTTPException(status_code=503, detail=detail)

    if isinstance(error, DomainError):
        status_code = DOMAIN_ERROR_STATUS_MAP.get(type(error), 400)
        if isinstance(error, ValidationError) and error.field is not None:
            detail["field"] = error.field
        return HTTPException(status_code=status_code, detail=detail)

    return HTTPException(status_code=500, detail=detail)
