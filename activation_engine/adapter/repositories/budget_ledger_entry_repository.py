"""SQLAlchemy implementation of BudgetLedgerEntryRepository"""

from datetime import datetime
from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.domain.budget_ledger_entry import BudgetLedgerEntry, BudgetEntryType


class SqlAlchemyBudgetLedgerEntryRepository(BudgetLedgerEntryRepository):
    """Append-only audit rows; the unique idempotency_key rejects duplicates"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[BudgetLedgerEntry]:
        stmt = select(BudgetLedgerEntry).where(BudgetLedgerEntry.idempotency_key == idempotency_key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, entry: BudgetLedgerEntry) -> BudgetLedgerEntry:
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def get_latest_reset(self, business_id: str) -> Optional[BudgetLedgerEntry]:
        stmt = (
            select(BudgetLedgerEntry)
            .where(BudgetLedgerEntry.business_id == business_id)
            .where(BudgetLedgerEntry.entry_type == BudgetEntryType.RESET)
            .order_by(BudgetLedgerEntry.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_since(self, business_id: str, since: datetime) -> list[BudgetLedgerEntry]:
        stmt = (
            select(BudgetLedgerEntry)
            .where(BudgetLedgerEntry.business_id == business_id)
            .where(BudgetLedgerEntry.created_at >= since)
            .order_by(BudgetLedgerEntry.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
