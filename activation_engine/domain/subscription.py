"""Subscription Domain Entity

Business subscription plan: drives the commission tier and the monthly
promotion budget granted at each renewal.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String
from activation_engine.domain.base import BaseModel, generate_uuid


class SubscriptionStatus(str, Enum):
    """Subscription status types"""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PlanTier(str, Enum):
    """Subscription plan tiers"""
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ELITE = "elite"


class Subscription(BaseModel, table=True):
    """
    Subscription - Business plan and its monthly allowances

    Domain Rules:
    - monthly_budget_cents and commission_free_offers are granted per period
    - Status transitions: active -> cancelled/expired
    - Businesses without an active subscription are on the free tier
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index('ix_subscriptions_business_id', 'business_id'),
        Index('ix_subscriptions_status', 'status'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Unique subscription identifier"
    )

    business_id: str = Field(
        description="Subscribed business"
    )

    external_subscription_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True),
        description="Payment processor subscription id"
    )

    status: SubscriptionStatus = Field(
        description="Subscription status (active, cancelled, expired)"
    )

    plan_tier: PlanTier = Field(
        default=PlanTier.FREE,
        description="Plan tier (free, basic, pro, elite)"
    )

    monthly_budget_cents: int = Field(
        default=0,
        description="Promotion budget granted each period"
    )

    commission_free_offers: int = Field(
        default=0,
        description="Commission-free offers granted each period"
    )

    current_period_start: datetime = Field(
        description="Current billing period start"
    )

    current_period_end: datetime = Field(
        description="Current billing period end"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Subscription creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "9c1d2e3f-0a1b-4c5d-8e9f-0a1b2c3d4e5f",
                "business_id": "business_7",
                "external_subscription_id": "sub_1Nabc",
                "status": "active",
                "plan_tier": "pro",
                "monthly_budget_cents": 20000,
                "commission_free_offers": 3,
                "current_period_start": "2024-01-01T00:00:00Z",
                "current_period_end": "2024-02-01T00:00:00Z"
            }
        }
