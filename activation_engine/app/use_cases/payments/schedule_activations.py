"""ScheduleActivations Use Case

Time-gated boost transitions and deferred budget settlement of
mixed-funded boosts.
"""

import logging
import time
from datetime import datetime
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.app.use_cases.budget.ledger_operations import settle_budget_share
from activation_engine.domain.transaction import TransactionStatus
from .dtos import ActivationResultDTO

logger = logging.getLogger(__name__)


class ScheduleActivations:
    """
    Use Case: Flip boost windows and settle deferred budget shares

    Business Rules:
    1. scheduled -> active once active_from has passed
    2. scheduled | active -> completed once active_until has passed
    3. Unsettled mixed budget shares are retried with the original idempotency key
    4. Every flip is a conditional update; concurrent runs cannot double-apply
    5. Paused boosts are left alone until resumed

    Flow:
    1. Activate due boosts
    2. Complete ended boosts
    3. Retry deferred budget deductions
    4. Return summary
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        ledger_repo: BudgetLedgerRepository,
        entry_repo: BudgetLedgerEntryRepository,
        batch_size: int = 500,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.ledger_repo = ledger_repo
        self.entry_repo = entry_repo
        self.batch_size = batch_size

    async def execute(self, now: Optional[datetime] = None) -> Result[ActivationResultDTO]:
        start_time = time.time()
        now = now or datetime.utcnow()

        try:
            due_activation_ids = [
                t.id for t in await self.transaction_repo.list_due_activations(now, self.batch_size)
            ]
            due_completion_ids = [
                t.id for t in await self.transaction_repo.list_due_completions(now, self.batch_size)
            ]
            unsettled_ids = [
                t.id for t in await self.transaction_repo.list_unsettled_budget(self.batch_size)
            ]
        except Exception as e:
            return Return.err(
                Error(
                    code=ErrorCode.ACTIVATION_FAILED,
                    message="Failed to list due boosts",
                    reason=str(e),
                )
            )

        activated = completed = budget_settled = errors = 0

        # Step 1: Activate
        for transaction_id in due_activation_ids:
            try:
                if await self._flip(transaction_id, [TransactionStatus.SCHEDULED], TransactionStatus.ACTIVE, now):
                    activated += 1
            except Exception as e:
                errors += 1
                await self.uow.rollback()
                logger.error(f"Activation of boost {transaction_id} failed: {e}")

        # Step 2: Complete
        for transaction_id in due_completion_ids:
            try:
                if await self._flip(
                    transaction_id,
                    [TransactionStatus.SCHEDULED, TransactionStatus.ACTIVE],
                    TransactionStatus.COMPLETED,
                    now,
                ):
                    completed += 1
            except Exception as e:
                errors += 1
                await self.uow.rollback()
                logger.error(f"Completion of boost {transaction_id} failed: {e}")

        # Step 3: Deferred budget shares
        for transaction_id in unsettled_ids:
            try:
                if await self._settle(transaction_id, now):
                    budget_settled += 1
            except Exception as e:
                errors += 1
                await self.uow.rollback()
                logger.error(f"Budget settlement of transaction {transaction_id} failed: {e}")

        execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Activation run: activated={activated}, completed={completed}, "
            f"budget_settled={budget_settled}, errors={errors}, {execution_time_ms}ms"
        )

        return Return.ok(
            ActivationResultDTO(
                activated=activated,
                completed=completed,
                budget_settled=budget_settled,
                errors=errors,
                run_at=now,
                execution_time_ms=execution_time_ms,
            )
        )

    async def _flip(
        self,
        transaction_id: str,
        from_statuses: list[TransactionStatus],
        to_status: TransactionStatus,
        now: datetime,
    ) -> bool:
        moved = await self.transaction_repo.transition_status(
            transaction_id, from_statuses, to_status, values={"updated_at": now}
        )
        await self.uow.commit()
        if moved:
            logger.info(f"Boost {transaction_id} -> {to_status.value}")
        return moved

    async def _settle(self, transaction_id: str, now: datetime) -> bool:
        transaction = await self.transaction_repo.get_by_id(transaction_id)
        if not transaction or transaction.budget_settled_at is not None:
            return False

        outcome = await settle_budget_share(self.ledger_repo, self.entry_repo, transaction)
        if not outcome.reserved:
            await self.uow.rollback()
            logger.info(f"Budget share of transaction {transaction_id} still unsettled: {outcome.failure_code}")
            return False

        await self.transaction_repo.update_fields(
            transaction_id, {"budget_settled_at": now, "updated_at": now}
        )
        await self.uow.commit()
        return True
