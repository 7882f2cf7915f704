"""AuditBudgetLedger Use Case

Verifies that each ledger's remaining budget matches its entry history.
"""

import logging
import time
from datetime import datetime
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.budget_ledger_entry import BudgetEntryType
from .dtos import BudgetAuditResultDTO, BudgetDiscrepancyDTO

logger = logging.getLogger(__name__)

DEBIT_ENTRY_TYPES = (BudgetEntryType.RESERVE, BudgetEntryType.DEDUCT)


class AuditBudgetLedger:
    """
    Use Case: Compare ledger counters against the append-only entries

    Business Rules:
    1. Expected remaining = amount of the latest reset - debits recorded after it
    2. Ledgers without a reset entry have no baseline and are skipped
    3. Discrepancies are reported and logged, never corrected automatically

    Flow:
    1. List all ledgers
    2. For each: find latest reset, sum later debits
    3. Compare with monthly_budget_remaining_cents
    4. Return audit summary
    """

    def __init__(
        self,
        ledger_repo: BudgetLedgerRepository,
        entry_repo: BudgetLedgerEntryRepository,
    ):
        self.ledger_repo = ledger_repo
        self.entry_repo = entry_repo

    async def execute(self) -> Result[BudgetAuditResultDTO]:
        try:
            start_time = time.time()
            audit_time = datetime.utcnow()

            # Step 1: List ledgers
            ledgers = await self.ledger_repo.list_all()

            discrepancies = []
            checked = 0

            for ledger in ledgers:
                # Step 2: Baseline from latest reset
                reset_entry = await self.entry_repo.get_latest_reset(ledger.business_id)
                if not reset_entry:
                    logger.debug(f"Ledger {ledger.id} has no reset entry, skipping audit")
                    continue

                checked += 1
                entries = await self.entry_repo.list_since(ledger.business_id, reset_entry.created_at)
                debits = sum(
                    entry.amount_cents
                    for entry in entries
                    if entry.entry_type in DEBIT_ENTRY_TYPES and entry.id != reset_entry.id
                )
                calculated = reset_entry.balance_after - debits

                # Step 3: Compare
                if calculated != ledger.monthly_budget_remaining_cents:
                    discrepancy = ledger.monthly_budget_remaining_cents - calculated
                    discrepancies.append(
                        BudgetDiscrepancyDTO(
                            business_id=ledger.business_id,
                            ledger_id=ledger.id,
                            ledger_remaining_cents=ledger.monthly_budget_remaining_cents,
                            calculated_remaining_cents=calculated,
                            discrepancy_cents=discrepancy,
                        )
                    )
                    logger.warning(
                        f"Budget discrepancy for business {ledger.business_id}: "
                        f"ledger={ledger.monthly_budget_remaining_cents}, "
                        f"calculated={calculated}, diff={discrepancy}"
                    )

            execution_time_ms = int((time.time() - start_time) * 1000)

            return Return.ok(
                BudgetAuditResultDTO(
                    total_ledgers_checked=checked,
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    audit_time=audit_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            return Return.err(
                Error(
                    code=ErrorCode.AUDIT_FAILED,
                    message="Budget ledger audit failed",
                    reason=str(e),
                )
            )
