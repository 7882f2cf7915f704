"""RetryCheckoutSession Use Case

Re-opens the processor session of an externally funded transaction that
is still pending after a failed or timed-out checkout.
"""

from datetime import datetime
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import FundingMode, TransactionStatus
from .dtos import CheckoutResponseDTO, CheckoutSettingsDTO
from .session_opener import CheckoutSessionOpener

RETRYABLE_FUNDING_MODES = (FundingMode.EXTERNAL_CHARGE, FundingMode.MIXED)


class RetryCheckoutSession:
    """
    Use Case: Manual retry of a checkout session

    Business Rules:
    1. Only pending, unflagged, unexpired rows with external funding qualify
    2. When a payer is given it must match
    3. The session carries the same idempotency key as the first attempt
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        catalog_repo: CatalogRepository,
        payment_gateway: PaymentGateway,
        settings: CheckoutSettingsDTO,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.session_opener = CheckoutSessionOpener(
            uow=uow,
            transaction_repo=transaction_repo,
            catalog_repo=catalog_repo,
            payment_gateway=payment_gateway,
            success_url=settings.success_url,
            cancel_url=settings.cancel_url,
        )

    async def execute(
        self, transaction_id: str, payer_ref: Optional[str] = None
    ) -> Result[CheckoutResponseDTO]:
        try:
            transaction = await self.transaction_repo.get_by_id(transaction_id)
            if not transaction:
                return Return.err(
                    Error(
                        code=ErrorCode.TRANSACTION_NOT_FOUND,
                        message=f"Transaction {transaction_id} not found",
                    )
                )

            if payer_ref is not None and transaction.payer_ref != payer_ref:
                return Return.err(
                    Error(
                        code=ErrorCode.FORBIDDEN,
                        message=f"Transaction {transaction_id} belongs to another payer",
                    )
                )

            expired = transaction.expires_at is not None and transaction.expires_at <= datetime.utcnow()
            if (
                transaction.status != TransactionStatus.PENDING
                or transaction.funding_mode not in RETRYABLE_FUNDING_MODES
                or transaction.flagged_for_review
                or expired
            ):
                return Return.err(
                    Error(
                        code=ErrorCode.INVALID_TRANSACTION_STATE,
                        message=f"Transaction {transaction_id} cannot open a new checkout session",
                        reason=f"status={transaction.status.value}, funding={transaction.funding_mode.value}",
                    )
                )

            opened = await self.session_opener.open(transaction)
            if opened.is_err():
                return Return.err(opened.error)

            session = opened.value
            return Return.ok(
                CheckoutResponseDTO(
                    transaction_id=transaction.id,
                    kind=transaction.kind,
                    status=TransactionStatus.AWAITING_EXTERNAL_PAYMENT,
                    funding_mode=transaction.funding_mode,
                    amount_gross_cents=transaction.amount_gross_cents,
                    commission_cents=transaction.commission_cents,
                    amount_net_cents=transaction.amount_net_cents,
                    partial_budget_cents=transaction.partial_budget_cents,
                    currency=transaction.currency,
                    redirect_url=session.url,
                    external_reference=session.session_id,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.INITIATE_CHECKOUT_FAILED,
                    message="Failed to retry checkout session",
                    reason=str(e),
                )
            )
