"""Subscription Repository Interface

Defines the contract for subscription persistence operations.
"""

from abc import ABC, abstractmethod
from typing import Optional
from activation_engine.domain.subscription import Subscription


class SubscriptionRepository(ABC):
    """Repository interface for Subscription persistence"""

    @abstractmethod
    async def get_active_by_business_id(self, business_id: str) -> Optional[Subscription]:
        """
        Get the active subscription of a business

        Args:
            business_id: Business identifier

        Returns:
            Active Subscription if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        """Get subscription by payment processor subscription id"""
        pass

    @abstractmethod
    async def list_active(self) -> list[Subscription]:
        """
        Get all active subscriptions

        Returns:
            List of active subscriptions
        """
        pass

    @abstractmethod
    async def update(self, subscription: Subscription) -> Subscription:
        """Persist changes to a subscription"""
        pass
