"""ExpireTransaction Use Case

Closes an unpaid transaction as expired and releases what it holds.
"""

import logging
from datetime import datetime
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import TransactionStatus
from .dtos import CloseOutcome, CloseResultDTO
from .effects import EXPIRY_EFFECT, release_and_close

logger = logging.getLogger(__name__)


class ExpireTransaction:
    """
    Use Case: Expire an open transaction

    Business Rules:
    1. Only pending / awaiting_external_payment rows expire (conditional update)
    2. Held reservation or offer purchase rows are released in the same commit
    3. Flagged rows are left for an operator
    4. Terminal rows are acknowledged without change
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        fulfillment_repo: FulfillmentRepository,
        notification_service: Optional[NotificationService] = None,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.fulfillment_repo = fulfillment_repo
        self.notification_service = notification_service

    async def execute(self, transaction_id: str, reason: str = "expired") -> Result[CloseResultDTO]:
        try:
            transaction = await self.transaction_repo.get_by_id(transaction_id)
            if not transaction:
                return Return.err(
                    Error(
                        code=ErrorCode.TRANSACTION_NOT_FOUND,
                        message=f"Transaction {transaction_id} not found",
                    )
                )

            if transaction.is_terminal:
                return Return.ok(self._already_terminal(transaction_id, transaction.status))

            if transaction.flagged_for_review:
                return Return.err(
                    Error(
                        code=ErrorCode.TRANSACTION_FLAGGED,
                        message=f"Transaction {transaction_id} is flagged for review",
                        reason=transaction.flag_reason,
                    )
                )

            kind = transaction.kind
            closed = await release_and_close(
                self.transaction_repo,
                self.fulfillment_repo,
                transaction,
                TransactionStatus.EXPIRED,
                EXPIRY_EFFECT,
                datetime.utcnow(),
            )
            if not closed:
                await self.uow.rollback()
                current = await self.transaction_repo.get_by_id(transaction_id)
                return Return.ok(self._already_terminal(transaction_id, current.status))

            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.EXPIRE_TRANSACTION_FAILED,
                    message="Failed to expire transaction",
                    reason=str(e),
                )
            )

        logger.info(f"Transaction {transaction_id} expired ({reason})")
        if self.notification_service:
            try:
                await self.notification_service.notify_transaction(kind, transaction_id, TransactionStatus.EXPIRED)
            except Exception as e:
                logger.warning(f"Notification failed for transaction {transaction_id}: {e}")

        return Return.ok(
            CloseResultDTO(
                transaction_id=transaction_id,
                outcome=CloseOutcome.CLOSED,
                status=TransactionStatus.EXPIRED,
            )
        )

    def _already_terminal(self, transaction_id: str, status: TransactionStatus) -> CloseResultDTO:
        return CloseResultDTO(
            transaction_id=transaction_id,
            outcome=CloseOutcome.ALREADY_TERMINAL,
            status=status,
        )
