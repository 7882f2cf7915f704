"""CompleteTransaction Use Case

The single path that applies a transaction's terminal side effects. Invoked
by checkout (budget and free funding), the webhook receiver and the
reconciliation sweep; safe to run any number of times for the same fact.
"""

import logging
from datetime import datetime
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import (
    OPEN_STATUSES,
    Transaction,
    TransactionKind,
    TransactionStatus,
    make_fingerprint,
)
from .dtos import (
    CompletionOutcome,
    CompletionResultDTO,
    PaymentFactSource,
    VerifiedPaymentFactDTO,
)
from .effects import (
    EFFECT_APPLIERS,
    FULFILLMENT_EFFECT,
    INVENTORY_EXHAUSTED_EFFECT,
    EffectContext,
    InventoryExhaustedError,
    release_and_close,
    resolve_fulfilled_status,
)

logger = logging.getLogger(__name__)

PROCESSOR_SOURCES = (PaymentFactSource.WEBHOOK, PaymentFactSource.SWEEP)


class CompleteTransaction:
    """
    Use Case: Apply a transaction's terminal effects exactly once

    Business Rules:
    1. Terminal or fingerprinted transactions are acknowledged without effects
    2. Flagged transactions are fenced until an operator intervenes
    3. Captured amount and session id must match what was persisted, else flag
    4. Status CAS and effect bundle commit together
    5. Exhausted inventory cancels the transaction and refunds the payer

    Flow:
    1. Load transaction
    2. Short-circuit terminal / flagged rows
    3. Integrity checks
    4. Conditional update to the fulfilled status with fingerprint
    5. Apply the kind's effects (dispatch table)
    6. Commit, then notify (best effort)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        catalog_repo: CatalogRepository,
        fulfillment_repo: FulfillmentRepository,
        ledger_repo: BudgetLedgerRepository,
        entry_repo: BudgetLedgerEntryRepository,
        payment_gateway: Optional[PaymentGateway] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.catalog_repo = catalog_repo
        self.fulfillment_repo = fulfillment_repo
        self.ledger_repo = ledger_repo
        self.entry_repo = entry_repo
        self.payment_gateway = payment_gateway
        self.notification_service = notification_service

    async def execute(
        self, transaction_id: str, fact: VerifiedPaymentFactDTO
    ) -> Result[CompletionResultDTO]:
        """
        Execute completion

        Args:
            transaction_id: Transaction to complete
            fact: Verified payment fact (processor, budget or free)

        Returns:
            Result[CompletionResultDTO]: applied or already_terminal, or
            TRANSACTION_NOT_FOUND / TRANSACTION_FLAGGED / AMOUNT_MISMATCH /
            REFERENCE_MISMATCH / INVENTORY_EXHAUSTED / COMPLETE_TRANSACTION_FAILED
        """
        kind: Optional[TransactionKind] = None
        try:
            now = datetime.utcnow()

            # Step 1: Load transaction
            transaction = await self.transaction_repo.get_by_id(transaction_id)
            if not transaction:
                return Return.err(
                    Error(
                        code=ErrorCode.TRANSACTION_NOT_FOUND,
                        message=f"Transaction {transaction_id} not found",
                    )
                )
            kind = transaction.kind

            # Step 2: Already closed
            if transaction.is_terminal or transaction.idempotency_fingerprint:
                await self._flag_late_payment(transaction, fact)
                return Return.ok(self._already_terminal(transaction))

            if transaction.flagged_for_review:
                return Return.err(
                    Error(
                        code=ErrorCode.TRANSACTION_FLAGGED,
                        message=f"Transaction {transaction_id} is flagged for review",
                        reason=transaction.flag_reason,
                    )
                )

            # Step 3: Integrity checks
            mismatch = self._check_integrity(transaction, fact)
            if mismatch:
                code, flag_reason, detail = mismatch
                await self.transaction_repo.update_fields(
                    transaction_id,
                    {"flagged_for_review": True, "flag_reason": flag_reason, "updated_at": now},
                )
                await self.uow.commit()
                logger.error(f"Transaction {transaction_id} flagged ({flag_reason}): {detail}")
                return Return.err(
                    Error(
                        code=code,
                        message=f"Transaction {transaction_id} flagged for review",
                        reason=detail,
                    )
                )

            # Step 4: Conditional update, a False return means another caller won
            target_status = resolve_fulfilled_status(transaction, now)
            values = {
                "idempotency_fingerprint": make_fingerprint(transaction_id, FULFILLMENT_EFFECT),
                "terminal_at": now,
                "updated_at": now,
            }
            if fact.payment_reference:
                values["payment_reference"] = fact.payment_reference
            if fact.external_reference and not transaction.external_reference:
                values["external_reference"] = fact.external_reference

            moved = await self.transaction_repo.transition_status(
                transaction_id, OPEN_STATUSES, target_status, values=values
            )
            if not moved:
                await self.uow.rollback()
                current = await self.transaction_repo.get_by_id(transaction_id)
                logger.info(f"Transaction {transaction_id} already closed by a concurrent caller")
                return Return.ok(self._already_terminal(current))

            # Step 5: Effect bundle
            context = EffectContext(
                catalog_repo=self.catalog_repo,
                fulfillment_repo=self.fulfillment_repo,
                ledger_repo=self.ledger_repo,
                entry_repo=self.entry_repo,
                now=now,
            )
            extra_values = await EFFECT_APPLIERS[kind](context, transaction)
            if extra_values:
                await self.transaction_repo.update_fields(transaction_id, extra_values)

            # Step 6: Commit
            await self.uow.commit()

        except InventoryExhaustedError as e:
            await self.uow.rollback()
            logger.warning(f"Inventory exhausted while completing transaction {transaction_id}: {e}")
            return await self._cancel_exhausted(transaction_id, fact)

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to complete transaction {transaction_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.COMPLETE_TRANSACTION_FAILED,
                    message="Failed to complete transaction",
                    reason=str(e),
                )
            )

        logger.info(f"Transaction {transaction_id} completed as {target_status.value} (source={fact.source.value})")
        await self._notify(kind, transaction_id, target_status)

        return Return.ok(
            CompletionResultDTO(
                transaction_id=transaction_id,
                kind=kind,
                outcome=CompletionOutcome.APPLIED,
                status=target_status,
            )
        )

    def _check_integrity(
        self, transaction: Transaction, fact: VerifiedPaymentFactDTO
    ) -> Optional[tuple[str, str, str]]:
        expected = transaction.external_charge_cents
        if fact.amount_cents != expected:
            return (
                ErrorCode.AMOUNT_MISMATCH,
                "amount_mismatch",
                f"expected={expected}, received={fact.amount_cents}",
            )

        if (
            fact.external_reference
            and transaction.external_reference
            and fact.external_reference != transaction.external_reference
        ):
            return (
                ErrorCode.REFERENCE_MISMATCH,
                "reference_mismatch",
                f"expected={transaction.external_reference}, received={fact.external_reference}",
            )
        return None

    async def _flag_late_payment(self, transaction: Transaction, fact: VerifiedPaymentFactDTO) -> None:
        """A processor reporting money for an expired or cancelled row needs a human"""
        if transaction.status not in (TransactionStatus.EXPIRED, TransactionStatus.CANCELLED):
            return
        if fact.source not in PROCESSOR_SOURCES or fact.amount_cents <= 0:
            return
        if transaction.flagged_for_review or transaction.refund_reference:
            return

        await self.transaction_repo.update_fields(
            transaction.id,
            {
                "flagged_for_review": True,
                "flag_reason": "payment_after_terminal",
                "payment_reference": fact.payment_reference,
                "updated_at": datetime.utcnow(),
            },
        )
        await self.uow.commit()
        logger.error(
            f"Payment reported for {transaction.status.value} transaction {transaction.id}, "
            f"flagged for review"
        )

    async def _cancel_exhausted(
        self, transaction_id: str, fact: VerifiedPaymentFactDTO
    ) -> Result[CompletionResultDTO]:
        """Cancel, release held rows and refund the captured amount"""
        try:
            now = datetime.utcnow()
            transaction = await self.transaction_repo.get_by_id(transaction_id)
            closed = await release_and_close(
                self.transaction_repo,
                self.fulfillment_repo,
                transaction,
                TransactionStatus.CANCELLED,
                INVENTORY_EXHAUSTED_EFFECT,
                now,
            )
            await self.uow.commit()

            if not closed:
                current = await self.transaction_repo.get_by_id(transaction_id)
                return Return.ok(self._already_terminal(current))

            await self._refund(transaction_id, fact)
            await self._notify(transaction.kind, transaction_id, TransactionStatus.CANCELLED)

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to cancel exhausted transaction {transaction_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.COMPLETE_TRANSACTION_FAILED,
                    message="Failed to cancel transaction after inventory exhaustion",
                    reason=str(e),
                )
            )

        return Return.err(
            Error(
                code=ErrorCode.INVENTORY_EXHAUSTED,
                message=f"Inventory exhausted, transaction {transaction_id} cancelled",
            )
        )

    async def _refund(self, transaction_id: str, fact: VerifiedPaymentFactDTO) -> None:
        if fact.amount_cents <= 0 or not fact.payment_reference:
            return

        try:
            if not self.payment_gateway:
                raise RuntimeError("No payment gateway configured for refunds")
            receipt = await self.payment_gateway.initiate_refund(
                fact.payment_reference,
                fact.amount_cents,
                idempotency_key=f"refund:{transaction_id}",
            )
            await self.transaction_repo.update_fields(
                transaction_id,
                {"refund_reference": receipt.refund_id, "updated_at": datetime.utcnow()},
            )
            logger.info(f"Refund {receipt.refund_id} requested for transaction {transaction_id}")
        except Exception as e:
            logger.error(f"Refund failed for transaction {transaction_id}: {e}")
            await self.transaction_repo.update_fields(
                transaction_id,
                {"flagged_for_review": True, "flag_reason": "refund_failed", "updated_at": datetime.utcnow()},
            )
        await self.uow.commit()

    async def _notify(self, kind: TransactionKind, transaction_id: str, status: TransactionStatus) -> None:
        if not self.notification_service:
            return
        try:
            sent = await self.notification_service.notify_transaction(kind, transaction_id, status)
            if not sent:
                logger.warning(f"Notification not accepted for transaction {transaction_id}")
        except Exception as e:
            logger.warning(f"Notification failed for transaction {transaction_id}: {e}")

    def _already_terminal(self, transaction: Transaction) -> CompletionResultDTO:
        return CompletionResultDTO(
            transaction_id=transaction.id,
            kind=transaction.kind,
            outcome=CompletionOutcome.ALREADY_TERMINAL,
            status=transaction.status,
        )
