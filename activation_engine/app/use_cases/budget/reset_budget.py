"""ResetBudget Use Case

Renews a business's budget ledger for a new billing period.
"""

import logging
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.budget_ledger import BudgetLedger
from activation_engine.domain.budget_ledger_entry import BudgetLedgerEntry, BudgetEntryType
from .dtos import ResetBudgetCommandDTO, BudgetLedgerDTO

logger = logging.getLogger(__name__)


def reset_idempotency_key(business_id: str, period_start) -> str:
    """Format: reset:{business_id}:{YYYY-MM-DD}"""
    return f"reset:{business_id}:{period_start.strftime('%Y-%m-%d')}"


class ResetBudget:
    """
    Use Case: Reset a budget ledger at renewal

    Business Rules:
    1. Invoked once per billing period; re-running for the same period is a no-op
    2. Creates the ledger on first renewal
    3. Overwrites both counters and the period under a row lock

    Flow:
    1. Check idempotency (reset:{business_id}:{period_start})
    2. Get or create ledger (locked)
    3. Overwrite counters and period
    4. Append reset entry
    5. Commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        ledger_repo: BudgetLedgerRepository,
        entry_repo: BudgetLedgerEntryRepository,
    ):
        self.uow = uow
        self.ledger_repo = ledger_repo
        self.entry_repo = entry_repo

    async def execute(self, command: ResetBudgetCommandDTO) -> Result[BudgetLedgerDTO]:
        try:
            # Step 1: Check idempotency
            idempotency_key = command.idempotency_key or reset_idempotency_key(
                command.business_id, command.period_start
            )
            existing_entry = await self.entry_repo.get_by_idempotency_key(idempotency_key)
            if existing_entry:
                ledger = await self.ledger_repo.get_by_business_id(command.business_id)
                logger.info(
                    f"Budget for business {command.business_id} already reset for period "
                    f"starting {command.period_start.date()}"
                )
                return Return.ok(self._to_dto(ledger))

            # Step 2: Get or create ledger
            ledger = await self.ledger_repo.get_by_business_id(command.business_id, for_update=True)
            if not ledger:
                ledger = await self.ledger_repo.create(
                    BudgetLedger(
                        business_id=command.business_id,
                        monthly_budget_remaining_cents=0,
                        commission_free_offers_remaining=0,
                    )
                )
            balance_before = ledger.monthly_budget_remaining_cents

            # Step 3: Overwrite counters
            await self.ledger_repo.overwrite(
                ledger.id,
                budget_cents=command.budget_cents,
                offer_count=command.offer_count,
                period_start=command.period_start,
                period_end=command.period_end,
            )

            # Step 4: Append reset entry
            await self.entry_repo.create(
                BudgetLedgerEntry(
                    business_id=command.business_id,
                    ledger_id=ledger.id,
                    entry_type=BudgetEntryType.RESET,
                    amount_cents=command.budget_cents,
                    balance_before=balance_before,
                    balance_after=command.budget_cents,
                    idempotency_key=idempotency_key,
                )
            )

            # Step 5: Commit
            await self.uow.commit()

            ledger = await self.ledger_repo.get_by_business_id(command.business_id)
            logger.info(
                f"Budget reset for business {command.business_id}: "
                f"budget={command.budget_cents}, offers={command.offer_count}"
            )
            return Return.ok(self._to_dto(ledger))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.RESET_BUDGET_FAILED,
                    message="Failed to reset budget ledger",
                    reason=str(e),
                )
            )

    def _to_dto(self, ledger: BudgetLedger) -> BudgetLedgerDTO:
        return BudgetLedgerDTO(
            business_id=ledger.business_id,
            monthly_budget_remaining_cents=ledger.monthly_budget_remaining_cents,
            commission_free_offers_remaining=ledger.commission_free_offers_remaining,
            period_start=ledger.period_start,
            period_end=ledger.period_end,
            updated_at=ledger.updated_at,
        )
