"""Catalog Repository Interface

Read access to purchasable items and payee profiles, plus the
capacity-guarded inventory increment used on completion.
"""

from abc import ABC, abstractmethod
from typing import Optional
from activation_engine.domain.catalog_item import CatalogItem
from activation_engine.domain.business import Business


class CatalogRepository(ABC):

    @abstractmethod
    async def get_item(self, item_id: str) -> Optional[CatalogItem]:
        """
        Retrieve catalog item by ID

        Args:
            item_id: Catalog item identifier

        Returns:
            CatalogItem if found, None otherwise
        """
        pass

    @abstractmethod
    async def increment_sold(self, item_id: str, quantity: int) -> bool:
        """
        Atomically add to quantity_sold without exceeding capacity

        Executes UPDATE ... SET quantity_sold = quantity_sold + :qty
        WHERE id = :id AND (capacity IS NULL OR quantity_sold + :qty <= capacity).

        Returns:
            True if the units were taken, False if capacity is exhausted
        """
        pass

    @abstractmethod
    async def mark_commission_free(self, item_id: str) -> None:
        pass

    @abstractmethod
    async def get_business(self, business_id: str) -> Optional[Business]:
        pass

    @abstractmethod
    async def has_event(self, business_id: str, event_ref: str) -> bool:
        """True if the business sells tickets for the event"""
        pass
