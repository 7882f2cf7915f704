"""Budget Ledger Repository Interface

Defines the contract for budget ledger persistence. Decrements are
conditional updates so the counters can never go below zero, even under
concurrent purchases for the same business.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from activation_engine.domain.budget_ledger import BudgetLedger


class BudgetLedgerRepository(ABC):
    """Repository interface for BudgetLedger persistence"""

    @abstractmethod
    async def get_by_business_id(self, business_id: str, for_update: bool = False) -> Optional[BudgetLedger]:
        """
        Retrieve ledger by business ID

        Args:
            business_id: Business identifier
            for_update: If True, lock the row with SELECT FOR UPDATE (pessimistic lock)

        Returns:
            BudgetLedger if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, ledger: BudgetLedger) -> BudgetLedger:
        """Create a new budget ledger"""
        pass

    @abstractmethod
    async def deduct_if_sufficient(self, ledger_id: str, amount_cents: int) -> bool:
        """
        Atomically decrement the remaining budget

        Executes UPDATE ... SET remaining = remaining - :amount
        WHERE id = :id AND remaining >= :amount.

        Args:
            ledger_id: Ledger ID
            amount_cents: Amount to deduct

        Returns:
            True if the budget covered the amount and was decremented
        """
        pass

    @abstractmethod
    async def get_remaining(self, ledger_id: str) -> int:
        """Read the remaining budget straight from the database"""
        pass

    @abstractmethod
    async def consume_commission_free_offer(self, ledger_id: str) -> bool:
        """Atomically decrement commission_free_offers_remaining if positive"""
        pass

    @abstractmethod
    async def overwrite(
        self,
        ledger_id: str,
        budget_cents: int,
        offer_count: int,
        period_start: datetime,
        period_end: datetime,
    ) -> None:
        """
        Replace ledger counters and period (renewal)

        Args:
            ledger_id: Ledger ID
            budget_cents: New monthly budget
            offer_count: New commission-free offer count
            period_start: New period start
            period_end: New period end
        """
        pass

    @abstractmethod
    async def list_all(self) -> list[BudgetLedger]:
        """List all ledgers"""
        pass
