"""SQLAlchemy implementation of CatalogRepository"""

from datetime import datetime
from typing import Optional
from sqlalchemy import or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.domain.business import Business
from activation_engine.domain.catalog_item import CatalogItem, CatalogItemType


class SqlAlchemyCatalogRepository(CatalogRepository):
    """
    SQLAlchemy implementation of CatalogRepository

    Inventory is taken with a single conditional UPDATE guarded by capacity.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_item(self, item_id: str) -> Optional[CatalogItem]:
        stmt = (
            select(CatalogItem)
            .where(CatalogItem.id == item_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def increment_sold(self, item_id: str, quantity: int) -> bool:
        stmt = (
            update(CatalogItem)
            .where(CatalogItem.id == item_id)
            .where(
                or_(
                    CatalogItem.capacity.is_(None),
                    CatalogItem.quantity_sold + quantity <= CatalogItem.capacity,
                )
            )
            .values(
                quantity_sold=CatalogItem.quantity_sold + quantity,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_commission_free(self, item_id: str) -> None:
        stmt = (
            update(CatalogItem)
            .where(CatalogItem.id == item_id)
            .values(commission_free=True, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def get_business(self, business_id: str) -> Optional[Business]:
        stmt = select(Business).where(Business.id == business_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def has_event(self, business_id: str, event_ref: str) -> bool:
        stmt = (
            select(CatalogItem.id)
            .where(CatalogItem.business_id == business_id)
            .where(CatalogItem.item_type.in_([CatalogItemType.TICKET_TIER, CatalogItemType.SEATING]))
            .where(CatalogItem.parent_ref == event_ref)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first() is not None
