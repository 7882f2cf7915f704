"""Catalog Item Domain Entity

A purchasable inventory pool owned by a business: an event ticket tier,
a reservable seating option or a discount offer. The engine reads it to
validate purchases and increments quantity_sold only on completion.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, String
from activation_engine.domain.base import BaseModel, generate_uuid


class CatalogItemType(str, Enum):
    TICKET_TIER = "ticket_tier"
    SEATING = "seating"
    OFFER = "offer"


class CatalogItem(BaseModel, table=True):
    """
    Catalog Item - Inventory pool with price and purchase limits

    Domain Rules:
    - quantity_sold never exceeds capacity (None = unlimited)
    - Sales are only open while active and inside [available_from, available_until]
    """

    __tablename__ = "catalog_items"
    __table_args__ = (
        CheckConstraint("quantity_sold >= 0", name="quantity_sold_non_negative"),
        CheckConstraint(
            "capacity IS NULL OR quantity_sold <= capacity",
            name="quantity_sold_within_capacity",
        ),
        CheckConstraint("percent_off >= 0 AND percent_off <= 100", name="percent_off_range"),
        Index("ix_catalog_items_business_type", "business_id", "item_type"),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    business_id: str = Field(description="Owning business (payee)")
    item_type: CatalogItemType = Field(description="ticket_tier, seating or offer")
    title: str = Field(sa_column=Column(String(200), nullable=False))
    parent_ref: Optional[str] = Field(default=None, description="Event the tier or seating belongs to")
    price_cents: int = Field(default=0, description="Unit list price")
    currency: str = Field(default="eur", sa_column=Column(String(3), nullable=False, default="eur"))
    percent_off: int = Field(default=0, description="Offer discount percent")
    capacity: Optional[int] = Field(default=None, description="Total units (None = unlimited)")
    quantity_sold: int = Field(default=0, description="Units sold by completed transactions")
    max_per_order: Optional[int] = Field(default=None, description="Units allowed in one order")
    max_per_user: Optional[int] = Field(default=None, description="Paid purchases allowed per user")
    min_party_size: int = Field(default=1)
    max_party_size: int = Field(default=10)
    commission_free: bool = Field(default=False, description="Sold without platform commission")
    active: bool = Field(default=True)
    available_from: Optional[datetime] = Field(default=None)
    available_until: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def remaining(self) -> Optional[int]:
        if self.capacity is None:
            return None
        return max(0, self.capacity - self.quantity_sold)

    def is_on_sale(self, now: datetime) -> bool:
        if not self.active:
            return False
        if self.available_from and now < self.available_from:
            return False
        if self.available_until and now > self.available_until:
            return False
        return True
