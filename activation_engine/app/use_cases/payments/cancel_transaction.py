"""CancelTransaction Use Case

User cancellation of an unpaid transaction.
"""

import logging
from datetime import datetime
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.payment_gateway import PaymentGateway, PaymentGatewayError, PaymentGatewayErrorType
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import FundingMode, TransactionStatus
from .dtos import CancelCommandDTO, CloseOutcome, CloseResultDTO
from .effects import CANCELLATION_EFFECT, release_and_close

logger = logging.getLogger(__name__)


class CancelTransaction:
    """
    Use Case: Cancel an unpaid transaction

    Business Rules:
    1. Only the payer may cancel
    2. Budget-funded and free transactions settle synchronously and cannot be cancelled
    3. Paid transactions cannot be cancelled; repeated cancels are acknowledged
    4. An open processor session is expired before the row is cancelled; if the
       processor refuses (e.g. the session was already paid) nothing is cancelled
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        fulfillment_repo: FulfillmentRepository,
        payment_gateway: Optional[PaymentGateway] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.fulfillment_repo = fulfillment_repo
        self.payment_gateway = payment_gateway
        self.notification_service = notification_service

    async def execute(self, transaction_id: str, command: CancelCommandDTO) -> Result[CloseResultDTO]:
        try:
            transaction = await self.transaction_repo.get_by_id(transaction_id)
            if not transaction:
                return Return.err(
                    Error(
                        code=ErrorCode.TRANSACTION_NOT_FOUND,
                        message=f"Transaction {transaction_id} not found",
                    )
                )

            if transaction.payer_ref != command.payer_ref:
                return Return.err(
                    Error(
                        code=ErrorCode.FORBIDDEN,
                        message=f"Transaction {transaction_id} belongs to another payer",
                    )
                )

            if transaction.status == TransactionStatus.CANCELLED:
                return Return.ok(
                    CloseResultDTO(
                        transaction_id=transaction_id,
                        outcome=CloseOutcome.ALREADY_TERMINAL,
                        status=transaction.status,
                    )
                )

            if (
                transaction.is_terminal
                or transaction.funding_mode in (FundingMode.INTERNAL_BUDGET, FundingMode.FREE)
            ):
                return Return.err(
                    Error(
                        code=ErrorCode.INVALID_TRANSACTION_STATE,
                        message=f"Transaction {transaction_id} cannot be cancelled",
                        reason=f"status={transaction.status.value}, funding={transaction.funding_mode.value}",
                    )
                )

            if transaction.flagged_for_review:
                return Return.err(
                    Error(
                        code=ErrorCode.TRANSACTION_FLAGGED,
                        message=f"Transaction {transaction_id} is flagged for review",
                        reason=transaction.flag_reason,
                    )
                )

            kind = transaction.kind
            session_id = transaction.external_reference
            if session_id and self.payment_gateway:
                try:
                    await self.payment_gateway.expire_session(session_id)
                except PaymentGatewayError as e:
                    await self.uow.rollback()
                    logger.warning(f"Could not expire session {session_id}, transaction {transaction_id} left open: {e}")
                    code = (
                        ErrorCode.INVALID_TRANSACTION_STATE
                        if e.error_type == PaymentGatewayErrorType.PERMANENT
                        else ErrorCode.PAYMENT_SESSION_FAILED
                    )
                    return Return.err(
                        Error(
                            code=code,
                            message=f"Payment session of transaction {transaction_id} could not be closed",
                            reason=str(e),
                        )
                    )

            closed = await release_and_close(
                self.transaction_repo,
                self.fulfillment_repo,
                transaction,
                TransactionStatus.CANCELLED,
                CANCELLATION_EFFECT,
                datetime.utcnow(),
            )
            if not closed:
                await self.uow.rollback()
                current = await self.transaction_repo.get_by_id(transaction_id)
                return Return.err(
                    Error(
                        code=ErrorCode.INVALID_TRANSACTION_STATE,
                        message=f"Transaction {transaction_id} was closed concurrently",
                        reason=f"status={current.status.value}",
                    )
                )

            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.CANCEL_TRANSACTION_FAILED,
                    message="Failed to cancel transaction",
                    reason=str(e),
                )
            )

        logger.info(f"Transaction {transaction_id} cancelled by payer")

        if self.notification_service:
            try:
                await self.notification_service.notify_transaction(kind, transaction_id, TransactionStatus.CANCELLED)
            except Exception as e:
                logger.warning(f"Notification failed for transaction {transaction_id}: {e}")

        return Return.ok(
            CloseResultDTO(
                transaction_id=transaction_id,
                outcome=CloseOutcome.CLOSED,
                status=TransactionStatus.CANCELLED,
            )
        )
