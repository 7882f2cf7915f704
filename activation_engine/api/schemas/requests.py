"""Request schemas for the Activation Engine API

Pydantic models for validating incoming HTTP requests.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator
from activation_engine.app.use_cases.payments.dtos import FundingPreferenceDTO
from activation_engine.domain.transaction import TransactionKind


class CheckoutRequestSchema(BaseModel):
    """
    Request schema for starting a checkout

    Used for POST /checkout endpoint.
    """

    kind: TransactionKind = Field(
        ...,
        description="ticket_order, reservation, offer_purchase or a boost kind"
    )

    subject_refs: Dict[str, Any] = Field(
        default_factory=dict,
        description="Kind-specific identifiers"
    )

    payer_ref: str = Field(
        ...,
        min_length=1,
        description="Purchasing user (required, non-empty)"
    )

    funding: FundingPreferenceDTO = Field(
        default_factory=FundingPreferenceDTO,
        description="Funding preference, external charge by default"
    )

    customer_email: Optional[str] = Field(default=None)
    success_url: Optional[str] = Field(default=None)
    cancel_url: Optional[str] = Field(default=None)

    @field_validator("payer_ref")
    @classmethod
    def validate_payer(cls, v):
        if not v.strip():
            raise ValueError("payer_ref must not be blank")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "offer_purchase",
                "subject_refs": {"offer_id": "offer_12"},
                "payer_ref": "user_42",
                "funding": {"mode": "external_charge"},
            }
        }


class PayerRequestSchema(BaseModel):
    """
    Request schema identifying the payer

    Used for POST /checkout/{id}/retry and POST /transactions/{id}/cancel.
    """

    payer_ref: str = Field(..., min_length=1, description="Must match the transaction's payer")


class ReserveBudgetRequestSchema(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Amount to reserve (must be > 0)")
    idempotency_key: str = Field(..., min_length=1, description="Unique key for idempotent reservation")
    transaction_id: Optional[str] = Field(default=None)


class ResetBudgetRequestSchema(BaseModel):
    """
    Request schema for renewing a budget ledger

    Used for POST /budgets/{business_id}/reset endpoint.
    """

    budget_cents: int = Field(..., ge=0, description="New monthly budget")
    offer_count: int = Field(..., ge=0, description="New commission-free offer count")
    period_start: datetime
    period_end: datetime
    idempotency_key: Optional[str] = Field(default=None)


class ClaimOfferRequestSchema(BaseModel):
    item_id: str = Field(..., min_length=1, description="Offer to sell without commission")
