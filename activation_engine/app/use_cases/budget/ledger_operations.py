"""Budget Ledger operations shared by use cases

These run inside the caller's unit of work and never commit, so a
budget deduction and the transaction change that caused it land in the
same database transaction.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.budget_ledger_entry import BudgetLedgerEntry, BudgetEntryType
from activation_engine.domain.transaction import Transaction, make_fingerprint

logger = logging.getLogger(__name__)

BUDGET_DEDUCTION_EFFECT = "budget_deduction"


@dataclass(frozen=True)
class ReservationOutcome:
    reserved: bool
    already_recorded: bool = False
    balance_before: int = 0
    balance_after: int = 0
    failure_code: Optional[str] = None


def budget_deduction_key(transaction_id: str) -> str:
    return make_fingerprint(transaction_id, BUDGET_DEDUCTION_EFFECT)


async def reserve_budget(
    ledger_repo: BudgetLedgerRepository,
    entry_repo: BudgetLedgerEntryRepository,
    business_id: str,
    amount_cents: int,
    idempotency_key: str,
    transaction_id: Optional[str] = None,
    entry_type: BudgetEntryType = BudgetEntryType.RESERVE,
) -> ReservationOutcome:
    """
    Atomic check-and-decrement of a business's remaining budget

    Recording the same idempotency_key twice is a no-op that reports success.
    The unique key on the entry table rejects a concurrent duplicate, rolling
    back its decrement with it.

    Returns:
        ReservationOutcome with reserved=False and a failure_code when the
        ledger is missing or cannot cover the amount
    """
    existing = await entry_repo.get_by_idempotency_key(idempotency_key)
    if existing:
        return ReservationOutcome(
            reserved=True,
            already_recorded=True,
            balance_before=existing.balance_before,
            balance_after=existing.balance_after,
        )

    ledger = await ledger_repo.get_by_business_id(business_id, for_update=True)
    if not ledger:
        return ReservationOutcome(reserved=False, failure_code=ErrorCode.LEDGER_NOT_FOUND)

    if not await ledger_repo.deduct_if_sufficient(ledger.id, amount_cents):
        logger.info(
            f"Budget reservation refused for business {business_id}: "
            f"required={amount_cents}, remaining={ledger.monthly_budget_remaining_cents}"
        )
        return ReservationOutcome(
            reserved=False,
            balance_before=ledger.monthly_budget_remaining_cents,
            balance_after=ledger.monthly_budget_remaining_cents,
            failure_code=ErrorCode.INSUFFICIENT_BUDGET,
        )

    balance_after = await ledger_repo.get_remaining(ledger.id)
    balance_before = balance_after + amount_cents

    await entry_repo.create(
        BudgetLedgerEntry(
            business_id=business_id,
            ledger_id=ledger.id,
            entry_type=entry_type,
            amount_cents=amount_cents,
            balance_before=balance_before,
            balance_after=balance_after,
            transaction_id=transaction_id,
            idempotency_key=idempotency_key,
        )
    )

    return ReservationOutcome(reserved=True, balance_before=balance_before, balance_after=balance_after)


async def settle_budget_share(
    ledger_repo: BudgetLedgerRepository,
    entry_repo: BudgetLedgerEntryRepository,
    transaction: Transaction,
) -> ReservationOutcome:
    """Deduct a transaction's budget share, at most once per transaction"""
    business_id = transaction.subject_refs.get("business_id")
    entry_type = BudgetEntryType.DEDUCT if transaction.partial_budget_cents else BudgetEntryType.RESERVE
    return await reserve_budget(
        ledger_repo,
        entry_repo,
        business_id=business_id,
        amount_cents=transaction.budget_share_cents,
        idempotency_key=budget_deduction_key(transaction.id),
        transaction_id=transaction.id,
        entry_type=entry_type,
    )
