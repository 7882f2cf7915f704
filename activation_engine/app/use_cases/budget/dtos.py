"""Data Transfer Objects for Budget Ledger Use Cases"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class ReserveBudgetCommandDTO(BaseModel):
    """
    Command DTO for reserving promotion budget

    Used as input to ReserveBudget use case.
    """

    business_id: str = Field(..., description="Business identifier")
    amount_cents: int = Field(..., gt=0, description="Amount to reserve (must be > 0)")
    idempotency_key: str = Field(..., description="Unique key for idempotent reservation")
    transaction_id: Optional[str] = Field(default=None, description="Transaction funded by the reservation")


class BudgetReservationDTO(BaseModel):
    business_id: str
    reserved: bool
    amount_cents: int
    balance_before: int
    balance_after: int
    idempotency_key: str


class ResetBudgetCommandDTO(BaseModel):
    """
    Command DTO for renewing a budget ledger

    Used as input to ResetBudget use case.
    """

    business_id: str = Field(..., description="Business identifier")
    budget_cents: int = Field(..., ge=0, description="New monthly budget")
    offer_count: int = Field(..., ge=0, description="New commission-free offer count")
    period_start: datetime = Field(..., description="Billing period start")
    period_end: datetime = Field(..., description="Billing period end")
    idempotency_key: Optional[str] = Field(
        default=None, description="Overrides the per-period reset key"
    )

    @model_validator(mode="after")
    def validate_period(self):
        if self.period_end <= self.period_start:
            raise ValueError("period_end must be after period_start")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "business_id": "business_7",
                "budget_cents": 20000,
                "offer_count": 3,
                "period_start": "2024-02-01T00:00:00",
                "period_end": "2024-03-01T00:00:00"
            }
        }


class BudgetLedgerDTO(BaseModel):
    business_id: str
    monthly_budget_remaining_cents: int
    commission_free_offers_remaining: int
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    updated_at: datetime


class ClaimCommissionFreeOfferCommandDTO(BaseModel):
    business_id: str = Field(..., description="Business identifier")
    item_id: str = Field(..., description="Offer to sell without commission")


class CommissionFreeClaimDTO(BaseModel):
    business_id: str
    item_id: str
    commission_free_offers_remaining: int


class BudgetDiscrepancyDTO(BaseModel):
    """Ledger whose remaining budget disagrees with its audit trail"""
    business_id: str
    ledger_id: str
    ledger_remaining_cents: int
    calculated_remaining_cents: int
    discrepancy_cents: int


class BudgetAuditResultDTO(BaseModel):
    total_ledgers_checked: int
    discrepancies_found: int
    discrepancies: list[BudgetDiscrepancyDTO] = Field(default_factory=list)
    audit_time: datetime
    execution_time_ms: int = 0


class BudgetRenewalResultDTO(BaseModel):
    """Summary of one budget renewal run"""
    total_subscriptions: int = 0
    renewed: int = 0
    already_renewed: int = 0
    errors: int = 0
    execution_time_ms: int = 0
