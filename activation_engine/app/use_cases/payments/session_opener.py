"""Opens the processor checkout session of a pending transaction"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.payment_gateway import (
    CheckoutSession,
    CheckoutSessionRequest,
    PaymentGateway,
    PaymentGatewayError,
    PaymentGatewayErrorType,
)
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import Transaction, TransactionStatus

logger = logging.getLogger(__name__)

# Processor accepts session expiries between 30 minutes and 24 hours ahead
MIN_SESSION_LIFETIME = timedelta(minutes=31)
MAX_SESSION_LIFETIME = timedelta(hours=23)

# subject_refs keys holding the payer's checkout options
CUSTOMER_EMAIL_REF = "checkout_customer_email"
SUCCESS_URL_REF = "checkout_success_url"
CANCEL_URL_REF = "checkout_cancel_url"


def checkout_refs(
    customer_email: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, str]:
    """subject_refs entries that pin the session parameters for later retries"""
    refs = {
        CUSTOMER_EMAIL_REF: customer_email,
        SUCCESS_URL_REF: success_url,
        CANCEL_URL_REF: cancel_url,
    }
    return {key: value for key, value in refs.items() if value}


class CheckoutSessionOpener:
    """
    Opens a hosted checkout session and moves the row to awaiting_external_payment

    Failure or timeout leaves the transaction pending, to be retried
    manually or expired by the reconciliation sweep. The request is built
    from the stored row only, so a retry under the same idempotency key
    sends the same parameters.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        catalog_repo: CatalogRepository,
        payment_gateway: PaymentGateway,
        success_url: str,
        cancel_url: str,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.catalog_repo = catalog_repo
        self.payment_gateway = payment_gateway
        self.success_url = success_url
        self.cancel_url = cancel_url

    async def open(self, transaction: Transaction) -> Result[CheckoutSession]:
        transaction_id = transaction.id
        request = await self._build_request(transaction)

        try:
            session = await self.payment_gateway.create_checkout_session(request)
        except PaymentGatewayError as e:
            logger.error(f"Checkout session for transaction {transaction_id} failed: {e}")
            if e.error_type == PaymentGatewayErrorType.TIMEOUT:
                return Return.err(
                    Error(
                        code=ErrorCode.PAYMENT_SESSION_TIMEOUT,
                        message="Payment processor did not answer in time",
                        reason=str(e),
                    )
                )
            return Return.err(
                Error(
                    code=ErrorCode.PAYMENT_SESSION_FAILED,
                    message="Payment processor rejected the checkout session",
                    reason=str(e),
                )
            )

        moved = await self.transaction_repo.transition_status(
            transaction_id,
            [TransactionStatus.PENDING],
            TransactionStatus.AWAITING_EXTERNAL_PAYMENT,
            values={"external_reference": session.session_id, "updated_at": datetime.utcnow()},
        )
        await self.uow.commit()

        if not moved:
            logger.warning(
                f"Transaction {transaction_id} left pending before session {session.session_id} was stored"
            )
            try:
                await self.payment_gateway.expire_session(session.session_id)
            except PaymentGatewayError as e:
                logger.warning(f"Could not expire orphaned session {session.session_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.INVALID_TRANSACTION_STATE,
                    message=f"Transaction {transaction_id} is no longer pending",
                )
            )

        logger.info(f"Checkout session {session.session_id} opened for transaction {transaction_id}")
        return Return.ok(session)

    async def _build_request(self, transaction: Transaction) -> CheckoutSessionRequest:
        refs = transaction.subject_refs
        created_at = transaction.created_at
        expires_at = created_at + MAX_SESSION_LIFETIME
        if transaction.expires_at:
            expires_at = min(expires_at, transaction.expires_at)
        expires_at = max(expires_at, created_at + MIN_SESSION_LIFETIME)
        success_url = refs.get(SUCCESS_URL_REF) or self.success_url
        cancel_url = refs.get(CANCEL_URL_REF) or self.cancel_url

        application_fee_cents = None
        destination_account = None
        if not transaction.is_boost:
            business = await self.catalog_repo.get_business(transaction.payee_ref)
            if business and business.settlement_account:
                application_fee_cents = transaction.commission_cents
                destination_account = business.settlement_account

        return CheckoutSessionRequest(
            transaction_id=transaction.id,
            amount_cents=transaction.external_charge_cents,
            currency=transaction.currency,
            product_name=refs.get("product_name") or transaction.kind.value,
            success_url=success_url.replace("{transaction_id}", transaction.id),
            cancel_url=cancel_url.replace("{transaction_id}", transaction.id),
            customer_email=refs.get(CUSTOMER_EMAIL_REF),
            application_fee_cents=application_fee_cents,
            destination_account=destination_account,
            expires_at=expires_at,
            metadata={"transaction_id": transaction.id, "kind": transaction.kind.value},
        )
