"""SQLAlchemy Subscription Repository Implementation

Implements subscription persistence using SQLAlchemy async session.
"""

from typing import Optional, List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from activation_engine.app.repositories.subscription_repository import SubscriptionRepository
from activation_engine.domain.subscription import Subscription, SubscriptionStatus


class SqlAlchemySubscriptionRepository(SubscriptionRepository):
    """
    SQLAlchemy implementation of SubscriptionRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_by_business_id(self, business_id: str) -> Optional[Subscription]:
        """
        Retrieve the active subscription of a business

        Args:
            business_id: Business identifier

        Returns:
            Most recent active Subscription, None when the business is on the free tier
        """
        statement = (
            select(Subscription)
            .where(Subscription.business_id == business_id)
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .order_by(Subscription.current_period_end.desc())
        )
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        statement = select(Subscription).where(
            Subscription.external_subscription_id == external_subscription_id
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def list_active(self) -> List[Subscription]:
        """
        Retrieve all active subscriptions

        Returns:
            List of active subscriptions
        """
        statement = select(Subscription).where(
            Subscription.status == SubscriptionStatus.ACTIVE
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def update(self, subscription: Subscription) -> Subscription:
        """
        Update an existing subscription

        Args:
            subscription: Subscription entity with updated values

        Returns:
            Updated Subscription
        """
        self.session.add(subscription)
        await self.session.flush()
        await self.session.refresh(subscription)
        return subscription
