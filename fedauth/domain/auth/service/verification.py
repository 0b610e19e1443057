"""Verification status and single-use attempt accounting."""

import logging
from datetime import UTC, datetime

from fedauth.domain.auth.model.value import VerificationStatus
from fedauth.domain.auth.model.verification import Verification
from fedauth.domain.auth.port.repository import (
    AccountTransferRepository,
    IdentificationRepository,
    SignInRepository,
    VerificationRepository,
)
from fedauth.domain.shared.service import Service

logger = logging.getLogger(__name__)


class VerificationService(Service):
    _verification_repo: VerificationRepository
    _identification_repo: IdentificationRepository
    _sign_in_repo: SignInRepository
    _account_transfer_repo: AccountTransferRepository

    async def status(self, verification: Verification) -> VerificationStatus:
        """Derive the status of a verification.

        Precedence: transferable, verified, failed, expired, unverified.
        """
        now = datetime.now(UTC)

        if verification.account_transfer_id is not None:
            transfer = await self._account_transfer_repo.get(verification.account_transfer_id)
            if transfer is not None and not transfer.expired(now):
                return VerificationStatus.TRANSFERABLE

        if await self._is_verified(verification):
            return VerificationStatus.VERIFIED

        if verification.failed():
            return VerificationStatus.FAILED

        if verification.expired(now):
            return VerificationStatus.EXPIRED

        return VerificationStatus.UNVERIFIED

    async def consume_attempt(self, verification: Verification) -> VerificationStatus:
        """Record one attempt and return the status that follows.

        The increment happens in the database so two concurrent callbacks
        for the same state cannot both observe the first attempt. The caller
        commits before acting on the result.
        """
        verification.attempts = await self._verification_repo.increment_attempts(verification.id)
        status = await self.status(verification)
        logger.debug(
            "Verification %s attempts=%d status=%s", verification.id, verification.attempts, status
        )
        return status

    async def _is_verified(self, verification: Verification) -> bool:
        identification = await self._identification_repo.find_by_verification_id(verification.id)
        if identification is not None and identification.is_verified():
            return True
        sign_in = await self._sign_in_repo.find_by_success_verification_id(verification.id)
        return sign_in is not None
