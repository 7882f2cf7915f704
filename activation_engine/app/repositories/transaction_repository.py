"""Transaction Repository Interface

Defines the contract for transaction persistence. All status changes go
through transition_status, a conditional update guarded by the current
status (compare-and-swap at the storage layer).
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional
from activation_engine.domain.transaction import Transaction, TransactionStatus


class TransactionRepository(ABC):
    """
    Repository interface for Transaction persistence

    Rows are never deleted. Callers must treat a False return from
    transition_status as "another caller already moved this row".
    """

    @abstractmethod
    async def get_by_id(self, transaction_id: str, for_update: bool = False) -> Optional[Transaction]:
        """
        Retrieve transaction by ID

        Args:
            transaction_id: Transaction identifier
            for_update: If True, lock the row with SELECT FOR UPDATE

        Returns:
            Transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_external_reference(self, external_reference: str) -> Optional[Transaction]:
        """Retrieve transaction by payment processor session id"""
        pass

    @abstractmethod
    async def create(self, transaction: Transaction) -> Transaction:
        """
        Create a new transaction

        Args:
            transaction: Transaction entity to persist

        Returns:
            Created Transaction
        """
        pass

    @abstractmethod
    async def transition_status(
        self,
        transaction_id: str,
        from_statuses: Iterable[TransactionStatus],
        to_status: TransactionStatus,
        values: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Conditionally move a transaction to a new status

        Executes UPDATE ... SET status = to_status WHERE id = :id
        AND status IN (from_statuses), together with any extra column values.

        Args:
            transaction_id: Transaction identifier
            from_statuses: Statuses the row must currently be in
            to_status: Target status
            values: Extra columns to set in the same statement

        Returns:
            True if this call moved the row, False if its status no longer matched
        """
        pass

    @abstractmethod
    async def update_fields(self, transaction_id: str, values: dict[str, Any]) -> None:
        """
        Update non-status columns (flags, references, settlement timestamps)

        Args:
            transaction_id: Transaction identifier
            values: Column values to set
        """
        pass

    @abstractmethod
    async def list_reconcilable(self, created_before: datetime, limit: int) -> list[Transaction]:
        """
        List open, unflagged, non-free transactions created before a cutoff

        Args:
            created_before: Only rows created at or before this instant
            limit: Maximum rows returned (oldest first)

        Returns:
            Candidate transactions for the reconciliation sweep
        """
        pass

    @abstractmethod
    async def list_due_activations(self, now: datetime, limit: int) -> list[Transaction]:
        """List scheduled boosts whose window has started"""
        pass

    @abstractmethod
    async def list_due_completions(self, now: datetime, limit: int) -> list[Transaction]:
        """List scheduled or active boosts whose window has ended"""
        pass

    @abstractmethod
    async def list_unsettled_budget(self, limit: int) -> list[Transaction]:
        """List fulfilled mixed-funded transactions whose budget share is not yet deducted"""
        pass

    @abstractmethod
    async def get_payout_totals(self, payee_ref: str) -> tuple[int, int, int, int]:
        """
        Aggregate fulfilled transactions of a payee

        Returns:
            Tuple of (count, gross_cents, commission_cents, net_cents)
        """
        pass
