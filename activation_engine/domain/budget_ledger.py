"""Budget Ledger Domain Entity

Tracks each business's monthly promotion budget and its remaining
commission-free offers. One ledger per business, overwritten at renewal.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field
from sqlalchemy import CheckConstraint
from activation_engine.domain.base import BaseModel, generate_uuid


class BudgetLedger(BaseModel, table=True):
    """
    Budget Ledger - Monthly promotion allowance of a business

    Domain Rules:
    - One ledger per business (business_id is unique)
    - Counters never go negative
    - monthly_budget_remaining_cents only decreases within a period
    - Reset once per billing period on renewal
    """

    __tablename__ = "budget_ledgers"
    __table_args__ = (
        CheckConstraint("monthly_budget_remaining_cents >= 0", name="budget_non_negative"),
        CheckConstraint("commission_free_offers_remaining >= 0", name="free_offers_non_negative"),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Unique ledger identifier"
    )

    business_id: str = Field(
        index=True,
        unique=True,
        description="Business owning the budget (one ledger per business)"
    )

    monthly_budget_remaining_cents: int = Field(
        default=0,
        description="Remaining promotion budget for the current period"
    )

    commission_free_offers_remaining: int = Field(
        default=0,
        description="Offers that may still be sold without commission"
    )

    period_start: Optional[datetime] = Field(
        default=None,
        description="Current billing period start"
    )

    period_end: Optional[datetime] = Field(
        default=None,
        description="Current billing period end"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Ledger creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last mutation timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "5a3e1c0b-2b44-4d3c-a1c2-7f9e0d6b5a41",
                "business_id": "business_7",
                "monthly_budget_remaining_cents": 5000,
                "commission_free_offers_remaining": 3,
                "period_start": "2024-01-01T00:00:00Z",
                "period_end": "2024-01-31T23:59:59Z"
            }
        }
