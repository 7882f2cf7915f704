"""SQLAlchemy implementation of TransactionRepository

Status changes are single conditional UPDATE statements; the affected row
count tells the caller whether it won the transition.
"""

from datetime import datetime
from typing import Any, Iterable, Optional
from sqlalchemy import func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.domain.transaction import (
    FULFILLED_STATUSES,
    OPEN_STATUSES,
    FundingMode,
    Transaction,
    TransactionStatus,
)


class SqlAlchemyTransactionRepository(TransactionRepository):
    """
    SQLAlchemy implementation of TransactionRepository

    Features:
    - Compare-and-swap status transitions (UPDATE ... WHERE status IN ...)
    - Reads always refresh the identity map, so rows changed by bulk
      updates are never served stale
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, transaction_id: str, for_update: bool = False) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_reference(self, external_reference: str) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.external_reference == external_reference)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create(self, transaction: Transaction) -> Transaction:
        self.session.add(transaction)
        await self.session.flush()
        await self.session.refresh(transaction)
        return transaction

    async def transition_status(
        self,
        transaction_id: str,
        from_statuses: Iterable[TransactionStatus],
        to_status: TransactionStatus,
        values: Optional[dict[str, Any]] = None,
    ) -> bool:
        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id)
            .where(Transaction.status.in_(list(from_statuses)))
            .values(status=to_status, **(values or {}))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def update_fields(self, transaction_id: str, values: dict[str, Any]) -> None:
        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def list_reconcilable(self, created_before: datetime, limit: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.status.in_(list(OPEN_STATUSES)))
            .where(Transaction.flagged_for_review == False)  # noqa: E712
            .where(Transaction.funding_mode != FundingMode.FREE)
            .where(Transaction.created_at <= created_before)
            .order_by(Transaction.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_due_activations(self, now: datetime, limit: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.status == TransactionStatus.SCHEDULED)
            .where(Transaction.active_from <= now)
            .order_by(Transaction.active_from)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_due_completions(self, now: datetime, limit: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.status.in_([TransactionStatus.SCHEDULED, TransactionStatus.ACTIVE]))
            .where(Transaction.active_until <= now)
            .order_by(Transaction.active_until)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_unsettled_budget(self, limit: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.funding_mode == FundingMode.MIXED)
            .where(Transaction.status.in_(list(FULFILLED_STATUSES)))
            .where(Transaction.partial_budget_cents > 0)
            .where(Transaction.budget_settled_at.is_(None))
            .order_by(Transaction.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_payout_totals(self, payee_ref: str) -> tuple[int, int, int, int]:
        stmt = (
            select(
                func.count(Transaction.id),
                func.coalesce(func.sum(Transaction.amount_gross_cents), 0),
                func.coalesce(func.sum(Transaction.commission_cents), 0),
                func.coalesce(func.sum(Transaction.amount_net_cents), 0),
            )
            .where(Transaction.payee_ref == payee_ref)
            .where(Transaction.status.in_(list(FULFILLED_STATUSES)))
        )
        result = await self.session.execute(stmt)
        count, gross, commission, net = result.one()
        return int(count), int(gross), int(commission), int(net)
