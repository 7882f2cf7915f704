"""HandleWebhookEvent Use Case

Verifies an inbound processor event and routes it to completion, expiry or
budget renewal. Duplicate deliveries are absorbed by the idempotency of the
routed use cases.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.payment_gateway import (
    PaymentEvent,
    PaymentGateway,
    WebhookSignatureError,
)
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.subscription_repository import SubscriptionRepository
from activation_engine.app.use_cases.errors import ErrorCode, INTEGRITY_ERRORS
from activation_engine.app.use_cases.budget.dtos import ResetBudgetCommandDTO
from activation_engine.app.use_cases.budget.reset_budget import ResetBudget
from activation_engine.domain.subscription import Subscription, SubscriptionStatus
from .complete_transaction import CompleteTransaction
from .dtos import PaymentFactSource, VerifiedPaymentFactDTO, WebhookAckDTO
from .expire_transaction import ExpireTransaction

logger = logging.getLogger(__name__)

# Redelivery cannot change these outcomes, so they are acknowledged
ACKNOWLEDGED_ERRORS = INTEGRITY_ERRORS | {ErrorCode.INVENTORY_EXHAUSTED}


def _from_timestamp(value: int) -> datetime:
    """Processor epoch seconds as a naive UTC datetime"""
    return datetime.fromtimestamp(value, timezone.utc).replace(tzinfo=None)


class HandleWebhookEvent:
    """
    Use Case: Process a processor webhook delivery

    Business Rules:
    1. Unverifiable payloads are rejected (INVALID_SIGNATURE)
    2. Paid sessions complete the transaction; expired/failed sessions expire it
    3. invoice.paid renews the subscriber's budget ledger for the invoice period
    4. customer.subscription.deleted zeroes the ledger
    5. Unknown event types are acknowledged and ignored
    6. Transient failures surface as errors so the processor redelivers
    """

    def __init__(
        self,
        uow: UnitOfWork,
        payment_gateway: PaymentGateway,
        transaction_repo: TransactionRepository,
        subscription_repo: SubscriptionRepository,
        complete_transaction: CompleteTransaction,
        expire_transaction: ExpireTransaction,
        reset_budget: ResetBudget,
    ):
        self.uow = uow
        self.payment_gateway = payment_gateway
        self.transaction_repo = transaction_repo
        self.subscription_repo = subscription_repo
        self.complete_transaction = complete_transaction
        self.expire_transaction = expire_transaction
        self.reset_budget = reset_budget
        self.handlers = {
            "checkout.session.completed": self._handle_session_completed,
            "checkout.session.async_payment_succeeded": self._handle_session_paid,
            "checkout.session.expired": self._handle_session_expired,
            "checkout.session.async_payment_failed": self._handle_session_expired,
            "invoice.paid": self._handle_invoice_paid,
            "customer.subscription.deleted": self._handle_subscription_deleted,
        }

    async def execute(self, payload: bytes, signature: Optional[str]) -> Result[WebhookAckDTO]:
        """
        Execute webhook handling

        Args:
            payload: Raw request body, exactly as received
            signature: Stripe-Signature header

        Returns:
            Result[WebhookAckDTO]: acknowledgement, INVALID_SIGNATURE, or
            WEBHOOK_PROCESSING_FAILED for transient failures
        """
        # Step 1: Verify signature
        try:
            if not signature:
                raise WebhookSignatureError("Missing signature header")
            event = self.payment_gateway.construct_event(payload, signature)
        except WebhookSignatureError as e:
            logger.warning(f"Rejected webhook: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.INVALID_SIGNATURE,
                    message="Webhook signature verification failed",
                    reason=str(e),
                )
            )

        # Step 2: Dispatch
        handler = self.handlers.get(event.event_type)
        if not handler:
            logger.debug(f"Ignoring webhook event {event.event_id} of type {event.event_type}")
            return Return.ok(self._ack(event, handled=False, outcome="ignored"))

        try:
            return await handler(event)
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Webhook event {event.event_id} ({event.event_type}) failed: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.WEBHOOK_PROCESSING_FAILED,
                    message="Failed to process webhook event",
                    reason=str(e),
                )
            )

    async def _handle_session_completed(self, event: PaymentEvent) -> Result[WebhookAckDTO]:
        if event.data.get("payment_status") != "paid":
            # Delayed payment methods confirm through async_payment_succeeded
            return Return.ok(self._ack(event, handled=True, outcome="awaiting_payment"))
        return await self._handle_session_paid(event)

    async def _handle_session_paid(self, event: PaymentEvent) -> Result[WebhookAckDTO]:
        session = event.data
        transaction_id = await self._resolve_transaction_id(session)
        if not transaction_id:
            logger.warning(f"Paid session {session.get('id')} matches no transaction")
            return Return.ok(self._ack(event, handled=True, outcome="unknown_transaction"))

        fact = VerifiedPaymentFactDTO(
            amount_cents=session.get("amount_total") or 0,
            external_reference=session.get("id"),
            payment_reference=session.get("payment_intent"),
            source=PaymentFactSource.WEBHOOK,
        )
        result = await self.complete_transaction.execute(transaction_id, fact)
        if result.is_err():
            return self._settle_error(event, transaction_id, result.error)

        return Return.ok(
            self._ack(event, handled=True, outcome=result.value.outcome.value, transaction_id=transaction_id)
        )

    async def _handle_session_expired(self, event: PaymentEvent) -> Result[WebhookAckDTO]:
        session = event.data
        transaction_id = await self._resolve_transaction_id(session)
        if not transaction_id:
            return Return.ok(self._ack(event, handled=True, outcome="unknown_transaction"))

        result = await self.expire_transaction.execute(transaction_id, reason=event.event_type)
        if result.is_err():
            return self._settle_error(event, transaction_id, result.error)

        return Return.ok(
            self._ack(event, handled=True, outcome=result.value.outcome.value, transaction_id=transaction_id)
        )

    async def _handle_invoice_paid(self, event: PaymentEvent) -> Result[WebhookAckDTO]:
        invoice = event.data
        subscription = await self._find_subscription(self._invoice_subscription_id(invoice))
        if not subscription:
            return Return.ok(self._ack(event, handled=True, outcome="unknown_subscription"))

        period_start, period_end = self._invoice_period(invoice, subscription)
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        subscription.updated_at = datetime.utcnow()
        await self.subscription_repo.update(subscription)

        # ResetBudget commits the subscription update together with the ledger
        result = await self.reset_budget.execute(
            ResetBudgetCommandDTO(
                business_id=subscription.business_id,
                budget_cents=subscription.monthly_budget_cents,
                offer_count=subscription.commission_free_offers,
                period_start=period_start,
                period_end=period_end,
            )
        )
        if result.is_err():
            return self._settle_error(event, None, result.error)
        return Return.ok(self._ack(event, handled=True, outcome="budget_reset"))

    async def _handle_subscription_deleted(self, event: PaymentEvent) -> Result[WebhookAckDTO]:
        subscription = await self._find_subscription(event.data.get("id"))
        if not subscription:
            return Return.ok(self._ack(event, handled=True, outcome="unknown_subscription"))

        now = datetime.utcnow()
        subscription.status = SubscriptionStatus.CANCELLED
        subscription.updated_at = now
        await self.subscription_repo.update(subscription)

        period_end = max(subscription.current_period_end, now + timedelta(days=1))
        result = await self.reset_budget.execute(
            ResetBudgetCommandDTO(
                business_id=subscription.business_id,
                budget_cents=0,
                offer_count=0,
                period_start=now,
                period_end=period_end,
                idempotency_key=f"reset:{subscription.business_id}:cancelled:{event.data.get('id')}",
            )
        )
        if result.is_err():
            return self._settle_error(event, None, result.error)
        return Return.ok(self._ack(event, handled=True, outcome="budget_cleared"))

    async def _resolve_transaction_id(self, session: dict[str, Any]) -> Optional[str]:
        metadata = session.get("metadata") or {}
        transaction_id = metadata.get("transaction_id") or session.get("client_reference_id")
        if transaction_id:
            return transaction_id

        session_id = session.get("id")
        if not session_id:
            return None
        transaction = await self.transaction_repo.get_by_external_reference(session_id)
        return transaction.id if transaction else None

    async def _find_subscription(self, external_subscription_id: Optional[str]) -> Optional[Subscription]:
        if not external_subscription_id:
            return None
        subscription = await self.subscription_repo.get_by_external_id(external_subscription_id)
        if not subscription:
            logger.warning(f"Webhook references unknown subscription {external_subscription_id}")
        return subscription

    def _invoice_subscription_id(self, invoice: dict[str, Any]) -> Optional[str]:
        subscription_id = invoice.get("subscription")
        if subscription_id:
            return subscription_id
        # Newer API versions nest it under parent.subscription_details
        parent = invoice.get("parent") or {}
        details = parent.get("subscription_details") or {}
        return details.get("subscription")

    def _invoice_period(
        self, invoice: dict[str, Any], subscription: Subscription
    ) -> tuple[datetime, datetime]:
        lines = (invoice.get("lines") or {}).get("data") or []
        period = (lines[0].get("period") if lines else None) or {}
        start = period.get("start") or invoice.get("period_start")
        end = period.get("end") or invoice.get("period_end")
        if start and end and end > start:
            return _from_timestamp(start), _from_timestamp(end)
        return subscription.current_period_start, subscription.current_period_end

    def _settle_error(
        self, event: PaymentEvent, transaction_id: Optional[str], error: Error
    ) -> Result[WebhookAckDTO]:
        if error.code in ACKNOWLEDGED_ERRORS:
            logger.warning(
                f"Webhook event {event.event_id} acknowledged with {error.code} "
                f"for transaction {transaction_id}"
            )
            return Return.ok(
                self._ack(event, handled=True, outcome=error.code.lower(), transaction_id=transaction_id)
            )
        if error.code in (ErrorCode.TRANSACTION_NOT_FOUND, ErrorCode.LEDGER_NOT_FOUND):
            return Return.ok(
                self._ack(event, handled=True, outcome=error.code.lower(), transaction_id=transaction_id)
            )

        return Return.err(
            Error(
                code=ErrorCode.WEBHOOK_PROCESSING_FAILED,
                message=f"Failed to process {event.event_type} event {event.event_id}",
                reason=f"{error.code}: {error.reason or error.message}",
            )
        )

    def _ack(
        self,
        event: PaymentEvent,
        handled: bool,
        outcome: str,
        transaction_id: Optional[str] = None,
    ) -> WebhookAckDTO:
        return WebhookAckDTO(
            event_id=event.event_id,
            event_type=event.event_type,
            handled=handled,
            outcome=outcome,
            transaction_id=transaction_id,
        )
