"""Routes for the signed-in user's identifications."""

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter

from fedauth.domain.auth.command.delete_identification import (
    DeleteIdentification,
    DeleteIdentificationHandler,
    DeleteIdentificationResult,
)

router = APIRouter(
    prefix="/me/identifications",
    tags=["Identifications"],
    route_class=DishkaRoute,
)


@router.delete("/{identification_id}")
async def delete_identification(
    identification_id: str,
    handler: FromDishka[DeleteIdentificationHandler],
) -> DeleteIdentificationResult:
    """Delete one of the user's identifications and its external account link."""
    return await handler.run(DeleteIdentification(identification_id=identification_id))
