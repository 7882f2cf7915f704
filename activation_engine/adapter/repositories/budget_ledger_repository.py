"""SQLAlchemy implementation of BudgetLedgerRepository

Provides persistence for BudgetLedger entities with pessimistic locking and
conditional decrements so concurrent purchases cannot overdraw a budget.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.domain.budget_ledger import BudgetLedger


class SqlAlchemyBudgetLedgerRepository(BudgetLedgerRepository):
    """
    SQLAlchemy implementation of BudgetLedgerRepository

    Features:
    - Pessimistic locking via SELECT FOR UPDATE
    - UPDATE ... WHERE remaining >= amount for decrements
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_business_id(self, business_id: str, for_update: bool = False) -> Optional[BudgetLedger]:
        """
        Retrieve ledger by business ID with optional row-level locking

        Args:
            business_id: Business identifier
            for_update: If True, locks the row with SELECT FOR UPDATE (prevents concurrent modifications)

        Returns:
            BudgetLedger if found, None otherwise
        """
        stmt = (
            select(BudgetLedger)
            .where(BudgetLedger.business_id == business_id)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, ledger: BudgetLedger) -> BudgetLedger:
        self.session.add(ledger)
        await self.session.flush()
        await self.session.refresh(ledger)
        return ledger

    async def deduct_if_sufficient(self, ledger_id: str, amount_cents: int) -> bool:
        stmt = (
            update(BudgetLedger)
            .where(BudgetLedger.id == ledger_id)
            .where(BudgetLedger.monthly_budget_remaining_cents >= amount_cents)
            .values(
                monthly_budget_remaining_cents=BudgetLedger.monthly_budget_remaining_cents - amount_cents,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_remaining(self, ledger_id: str) -> int:
        stmt = select(BudgetLedger.monthly_budget_remaining_cents).where(BudgetLedger.id == ledger_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def consume_commission_free_offer(self, ledger_id: str) -> bool:
        stmt = (
            update(BudgetLedger)
            .where(BudgetLedger.id == ledger_id)
            .where(BudgetLedger.commission_free_offers_remaining > 0)
            .values(
                commission_free_offers_remaining=BudgetLedger.commission_free_offers_remaining - 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def overwrite(
        self,
        ledger_id: str,
        budget_cents: int,
        offer_count: int,
        period_start: datetime,
        period_end: datetime,
    ) -> None:
        """
        Replace counters and period

        Note:
            Should be called within a transaction with the ledger already locked
        """
        stmt = (
            update(BudgetLedger)
            .where(BudgetLedger.id == ledger_id)
            .values(
                monthly_budget_remaining_cents=budget_cents,
                commission_free_offers_remaining=offer_count,
                period_start=period_start,
                period_end=period_end,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def list_all(self) -> list[BudgetLedger]:
        stmt = select(BudgetLedger).order_by(BudgetLedger.business_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
