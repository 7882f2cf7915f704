"""Budget Ledger Entry Repository Interface"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from activation_engine.domain.budget_ledger_entry import BudgetLedgerEntry


class BudgetLedgerEntryRepository(ABC):
    """Repository interface for the append-only budget audit trail"""

    @abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[BudgetLedgerEntry]:
        """
        Retrieve entry by idempotency key

        Args:
            idempotency_key: Unique mutation key

        Returns:
            BudgetLedgerEntry if the mutation was already recorded, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, entry: BudgetLedgerEntry) -> BudgetLedgerEntry:
        """Append a new entry"""
        pass

    @abstractmethod
    async def get_latest_reset(self, business_id: str) -> Optional[BudgetLedgerEntry]:
        """Most recent reset entry of a business"""
        pass

    @abstractmethod
    async def list_since(self, business_id: str, since: datetime) -> list[BudgetLedgerEntry]:
        """
        List entries of a business created at or after a timestamp

        Args:
            business_id: Business identifier
            since: Lower bound (inclusive)

        Returns:
            Entries ordered by created_at
        """
        pass
