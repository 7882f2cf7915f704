"""RunReconciliationSweep Use Case

Self-healing scan for transactions whose webhook never arrived: asks the
processor for ground truth and completes or expires accordingly.
"""

import logging
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.payment_gateway import PaymentGateway, PaymentGatewayError
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode, INTEGRITY_ERRORS
from activation_engine.app.use_cases.budget.ledger_operations import budget_deduction_key
from activation_engine.domain.transaction import FundingMode, Transaction, TransactionStatus
from .complete_transaction import CompleteTransaction
from .dtos import (
    CloseOutcome,
    CompletionOutcome,
    PaymentFactSource,
    ReconciliationSweepResultDTO,
    VerifiedPaymentFactDTO,
)
from .expire_transaction import ExpireTransaction

logger = logging.getLogger(__name__)


class SweepOutcome(str, Enum):
    RECONCILED = "reconciled"
    EXPIRED = "expired"
    SKIPPED = "skipped"


class RunReconciliationSweep:
    """
    Use Case: Reconcile open transactions against the processor

    Business Rules:
    1. Only unflagged open rows older than min_age are examined
    2. A row is abandoned past max_age or its expires_at
    3. Paid sessions are completed; expired sessions and abandoned rows are expired
    4. Budget-pending rows complete if their deduction was recorded, else expire
    5. Per-row failures are counted, never abort the sweep

    Flow:
    1. List candidates (oldest first, batch_size)
    2. Reconcile each row by status and funding
    3. Return summary
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        entry_repo: BudgetLedgerEntryRepository,
        payment_gateway: PaymentGateway,
        complete_transaction: CompleteTransaction,
        expire_transaction: ExpireTransaction,
        min_age_minutes: int = 30,
        max_age_hours: int = 24,
        batch_size: int = 200,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.entry_repo = entry_repo
        self.payment_gateway = payment_gateway
        self.complete_transaction = complete_transaction
        self.expire_transaction = expire_transaction
        self.min_age = timedelta(minutes=min_age_minutes)
        self.max_age = timedelta(hours=max_age_hours)
        self.batch_size = batch_size

    async def execute(self, now: Optional[datetime] = None) -> Result[ReconciliationSweepResultDTO]:
        """
        Execute one sweep

        Args:
            now: Reference time (defaults to utcnow)

        Returns:
            Result[ReconciliationSweepResultDTO]: Counters for this run
        """
        start_time = time.time()
        now = now or datetime.utcnow()

        try:
            # Step 1: Candidates; ids only, each row is reloaded fresh
            candidates = await self.transaction_repo.list_reconcilable(now - self.min_age, self.batch_size)
            candidate_ids = [transaction.id for transaction in candidates]
        except Exception as e:
            return Return.err(
                Error(
                    code=ErrorCode.RECONCILIATION_FAILED,
                    message="Failed to list reconciliation candidates",
                    reason=str(e),
                )
            )

        counts = {outcome: 0 for outcome in SweepOutcome}
        errors = 0

        # Step 2: Reconcile each row
        for transaction_id in candidate_ids:
            try:
                transaction = await self.transaction_repo.get_by_id(transaction_id)
                if not transaction or transaction.is_terminal or transaction.flagged_for_review:
                    counts[SweepOutcome.SKIPPED] += 1
                    continue

                outcome = await self._reconcile(transaction, now)
                counts[outcome] += 1
            except Exception as e:
                errors += 1
                await self.uow.rollback()
                logger.error(f"Reconciliation of transaction {transaction_id} failed: {e}")

        execution_time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Reconciliation sweep: checked={len(candidate_ids)}, "
            f"reconciled={counts[SweepOutcome.RECONCILED]}, expired={counts[SweepOutcome.EXPIRED]}, "
            f"skipped={counts[SweepOutcome.SKIPPED]}, errors={errors}, {execution_time_ms}ms"
        )

        return Return.ok(
            ReconciliationSweepResultDTO(
                checked=len(candidate_ids),
                reconciled=counts[SweepOutcome.RECONCILED],
                expired=counts[SweepOutcome.EXPIRED],
                skipped=counts[SweepOutcome.SKIPPED],
                errors=errors,
                run_at=now,
                execution_time_ms=execution_time_ms,
            )
        )

    def _is_abandoned(self, transaction: Transaction, now: datetime) -> bool:
        if transaction.created_at <= now - self.max_age:
            return True
        return transaction.expires_at is not None and transaction.expires_at <= now

    async def _reconcile(self, transaction: Transaction, now: datetime) -> SweepOutcome:
        if transaction.status == TransactionStatus.AWAITING_EXTERNAL_PAYMENT:
            return await self._reconcile_awaiting(transaction, now)

        if transaction.funding_mode == FundingMode.INTERNAL_BUDGET:
            return await self._reconcile_budget_pending(transaction)

        # Pending without a session: waits for a manual retry until abandoned
        if self._is_abandoned(transaction, now):
            return await self._expire(transaction.id, "abandoned_without_session")
        return SweepOutcome.SKIPPED

    async def _reconcile_awaiting(self, transaction: Transaction, now: datetime) -> SweepOutcome:
        transaction_id = transaction.id
        session_id = transaction.external_reference
        session = await self.payment_gateway.retrieve_session(session_id)

        if session.is_paid:
            if session.correlation_id and session.correlation_id != transaction_id:
                logger.error(
                    f"Session {session_id} correlates to {session.correlation_id}, "
                    f"not transaction {transaction_id}"
                )
                return SweepOutcome.SKIPPED
            fact = VerifiedPaymentFactDTO(
                amount_cents=session.amount_total or 0,
                external_reference=session.session_id,
                payment_reference=session.payment_reference,
                source=PaymentFactSource.SWEEP,
            )
            return await self._complete(transaction_id, fact)

        if session.is_expired:
            return await self._expire(transaction_id, "session_expired")

        if self._is_abandoned(transaction, now):
            try:
                await self.payment_gateway.expire_session(session_id)
            except PaymentGatewayError as e:
                # Session may have been paid since the lookup; retry next sweep
                logger.warning(f"Could not expire session {session_id}: {e}")
                return SweepOutcome.SKIPPED
            return await self._expire(transaction_id, "abandoned")

        return SweepOutcome.SKIPPED

    async def _reconcile_budget_pending(self, transaction: Transaction) -> SweepOutcome:
        entry = await self.entry_repo.get_by_idempotency_key(budget_deduction_key(transaction.id))
        if entry:
            fact = VerifiedPaymentFactDTO(amount_cents=0, source=PaymentFactSource.BUDGET)
            return await self._complete(transaction.id, fact)
        return await self._expire(transaction.id, "budget_reservation_failed")

    async def _complete(self, transaction_id: str, fact: VerifiedPaymentFactDTO) -> SweepOutcome:
        result = await self.complete_transaction.execute(transaction_id, fact)
        if result.is_err():
            if result.error.code in INTEGRITY_ERRORS or result.error.code == ErrorCode.INVENTORY_EXHAUSTED:
                logger.warning(f"Transaction {transaction_id} not reconciled: {result.error.code}")
                return SweepOutcome.SKIPPED
            raise RuntimeError(f"{result.error.code}: {result.error.reason or result.error.message}")

        if result.value.outcome == CompletionOutcome.APPLIED:
            logger.info(f"Transaction {transaction_id} reconciled from {fact.source.value}")
            return SweepOutcome.RECONCILED
        return SweepOutcome.SKIPPED

    async def _expire(self, transaction_id: str, reason: str) -> SweepOutcome:
        result = await self.expire_transaction.execute(transaction_id, reason=reason)
        if result.is_err():
            if result.error.code == ErrorCode.TRANSACTION_FLAGGED:
                return SweepOutcome.SKIPPED
            raise RuntimeError(f"{result.error.code}: {result.error.reason or result.error.message}")

        if result.value.outcome == CloseOutcome.CLOSED:
            return SweepOutcome.EXPIRED
        return SweepOutcome.SKIPPED
