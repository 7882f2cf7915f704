"""Get Budget Use Case

Retrieves a business's current budget ledger.
"""

from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.use_cases.errors import ErrorCode
from .dtos import BudgetLedgerDTO


class GetBudget:
    """Read-only retrieval of a business's remaining budget and offer counter"""

    def __init__(self, ledger_repo: BudgetLedgerRepository):
        self.ledger_repo = ledger_repo

    async def execute(self, business_id: str) -> Result[BudgetLedgerDTO]:
        ledger = await self.ledger_repo.get_by_business_id(business_id)

        if not ledger:
            return Return.err(
                Error(
                    code=ErrorCode.LEDGER_NOT_FOUND,
                    message=f"No budget ledger found for business {business_id}",
                )
            )

        return Return.ok(
            BudgetLedgerDTO(
                business_id=ledger.business_id,
                monthly_budget_remaining_cents=ledger.monthly_budget_remaining_cents,
                commission_free_offers_remaining=ledger.commission_free_offers_remaining,
                period_start=ledger.period_start,
                period_end=ledger.period_end,
                updated_at=ledger.updated_at,
            )
        )
