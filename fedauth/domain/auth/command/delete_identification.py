"""Delete one of the signed-in user's identifications."""

from dataclasses import dataclass

from fedauth.domain.auth.error import ResourceNotFound
from fedauth.domain.auth.model.value import CurrentUser, IdentificationId
from fedauth.domain.auth.service.identification import IdentificationService
from fedauth.domain.shared.command import Command, CommandHandler, Result


class DeleteIdentification(Command):
    identification_id: str


class DeleteIdentificationResult(Result):
    id: str
    deleted: bool


@dataclass
class DeleteIdentificationHandler(
    CommandHandler[DeleteIdentification, DeleteIdentificationResult]
):
    """Handler for DeleteIdentification command."""

    current_user: CurrentUser
    identification_service: IdentificationService

    async def run(self, cmd: DeleteIdentification) -> DeleteIdentificationResult:
        try:
            identification_id = IdentificationId.parse(cmd.identification_id)
        except ValueError as e:
            raise ResourceNotFound() from e

        await self.identification_service.delete(self.current_user.user_id, identification_id)
        return DeleteIdentificationResult(id=cmd.identification_id, deleted=True)
