"""Offer Purchase Domain Entity

A discount-offer purchase. Becomes redeemable once paid.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import String
from activation_engine.domain.base import BaseModel, generate_uuid


class OfferPurchaseStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REDEEMED = "redeemed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Statuses counted against an offer's per-user limit
COUNTED_PURCHASE_STATUSES = (OfferPurchaseStatus.PAID, OfferPurchaseStatus.REDEEMED)


class OfferPurchase(BaseModel, table=True):
    """
    Offer Purchase - Redeemable voucher tied to exactly one transaction

    Domain Rules:
    - qr_code_token is attached once, when the purchase is paid
    - Only paid/redeemed purchases count against max_per_user
    """

    __tablename__ = "offer_purchases"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    transaction_id: str = Field(index=True, unique=True)
    offer_id: str = Field(index=True, description="Catalog item (offer)")
    payer_ref: str = Field(index=True)
    status: OfferPurchaseStatus = Field(default=OfferPurchaseStatus.PENDING)
    qr_code_token: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, unique=True),
    )
    paid_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
