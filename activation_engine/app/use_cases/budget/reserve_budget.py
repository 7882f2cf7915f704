"""ReserveBudget Use Case

Reserves promotion budget from a business's ledger with idempotency
guarantees and an atomic conditional decrement.
"""

from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode
from .dtos import ReserveBudgetCommandDTO, BudgetReservationDTO
from .ledger_operations import reserve_budget


class ReserveBudget:
    """
    Use Case: Reserve budget from a business ledger

    Business Rules:
    1. Idempotency: same idempotency_key returns the original reservation
    2. Fails closed: the ledger never goes below zero
    3. Serialized per business: row lock plus conditional update

    Flow:
    1. Check idempotency
    2. Lock ledger, conditionally decrement
    3. Append ledger entry
    4. Commit
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

    async def execute(self, command: ReserveBudgetCommandDTO) -> Result[BudgetReservationDTO]:
        """
        Execute budget reservation

        Args:
            command: ReserveBudgetCommandDTO with business_id, amount_cents, idempotency_key

        Returns:
            Result[BudgetReservationDTO]: Reservation snapshot, or
            INSUFFICIENT_BUDGET / LEDGER_NOT_FOUND
        """
        try:
            outcome = await reserve_budget(
                self.ledger_repo,
                self.entry_repo,
                business_id=command.business_id,
                amount_cents=command.amount_cents,
                idempotency_key=command.idempotency_key,
                transaction_id=command.transaction_id,
            )

            if not outcome.reserved:
                await self.uow.rollback()
                if outcome.failure_code == ErrorCode.LEDGER_NOT_FOUND:
                    return Return.err(
                        Error(
                            code=ErrorCode.LEDGER_NOT_FOUND,
                            message=f"Budget ledger not found for business {command.business_id}",
                        )
                    )
                return Return.err(
                    Error(
                        code=ErrorCode.INSUFFICIENT_BUDGET,
                        message=(
                            f"Insufficient budget. Required: {command.amount_cents}, "
                            f"Available: {outcome.balance_before}"
                        ),
                        reason=f"remaining={outcome.balance_before}, required={command.amount_cents}",
                    )
                )

            await self.uow.commit()

            return Return.ok(
                BudgetReservationDTO(
                    business_id=command.business_id,
                    reserved=True,
                    amount_cents=command.amount_cents,
                    balance_before=outcome.balance_before,
                    balance_after=outcome.balance_after,
                    idempotency_key=command.idempotency_key,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.RESERVE_BUDGET_FAILED,
                    message="Failed to reserve budget",
                    reason=str(e),
                )
            )
