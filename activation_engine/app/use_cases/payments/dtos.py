"""Data Transfer Objects for Payment Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator
from activation_engine.domain.transaction import FundingMode, TransactionKind, TransactionStatus


class FundingPreferenceDTO(BaseModel):
    """How the payer wants to fund a checkout"""

    mode: FundingMode = Field(
        default=FundingMode.EXTERNAL_CHARGE,
        description="external_charge, internal_budget or mixed (free is decided by price)"
    )

    partial_budget_cents: int = Field(
        default=0,
        ge=0,
        description="Budget share for mixed funding"
    )


class InitiateCheckoutCommandDTO(BaseModel):
    """
    Command DTO for starting a checkout

    Used as input to InitiateCheckout use case.
    """

    kind: TransactionKind = Field(
        ...,
        description="Transaction kind"
    )

    subject_refs: Dict[str, Any] = Field(
        default_factory=dict,
        description="Kind-specific identifiers (tier_id/quantity, seating_id/party_size, offer_id, boost window)"
    )

    payer_ref: str = Field(
        ...,
        min_length=1,
        description="Purchasing user"
    )

    funding: FundingPreferenceDTO = Field(
        default_factory=FundingPreferenceDTO,
        description="Funding preference"
    )

    customer_email: Optional[str] = Field(
        default=None,
        description="Prefilled on the hosted checkout page"
    )

    success_url: Optional[str] = Field(
        default=None,
        description="Overrides the configured success redirect"
    )

    cancel_url: Optional[str] = Field(
        default=None,
        description="Overrides the configured cancel redirect"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "ticket_order",
                "subject_refs": {"tier_id": "tier_123", "quantity": 2},
                "payer_ref": "user_42",
                "funding": {"mode": "external_charge"},
                "customer_email": "guest@example.com"
            }
        }


class CheckoutSettingsDTO(BaseModel):
    """Pricing and redirect settings applied by the checkout use cases"""

    currency: str = "eur"
    default_commission_percent: int = 12
    commission_rates: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    platform_payee_ref: str = "platform"
    transaction_ttl_hours: int = 24
    success_url: str = "http://localhost:3000/checkout/success?transaction_id={transaction_id}"
    cancel_url: str = "http://localhost:3000/checkout/cancelled?transaction_id={transaction_id}"


class CheckoutResponseDTO(BaseModel):
    """Outcome of a checkout: a redirect for external payment or an immediate result"""

    transaction_id: str
    kind: TransactionKind
    status: TransactionStatus
    funding_mode: FundingMode
    amount_gross_cents: int
    commission_cents: int
    amount_net_cents: int
    partial_budget_cents: int = 0
    currency: str
    redirect_url: Optional[str] = None
    external_reference: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "transaction_id": "0b7f7c2e-4f0e-4a57-9d8e-1f0c9a8b7e21",
                "kind": "offer_purchase",
                "status": "awaiting_external_payment",
                "funding_mode": "external_charge",
                "amount_gross_cents": 800,
                "commission_cents": 96,
                "amount_net_cents": 704,
                "partial_budget_cents": 0,
                "currency": "eur",
                "redirect_url": "https://checkout.stripe.com/c/pay/cs_test_a1b2c3",
                "external_reference": "cs_test_a1b2c3"
            }
        }


class PaymentFactSource(str, Enum):
    WEBHOOK = "webhook"
    SWEEP = "sweep"
    BUDGET = "budget"
    FREE = "free"


class VerifiedPaymentFactDTO(BaseModel):
    """
    Fact asserting that a transaction's payment succeeded

    Built from a verified webhook, a processor lookup, or the internal
    budget/free path.
    """

    amount_cents: int = Field(
        ...,
        ge=0,
        description="Amount the processor captured (0 for budget and free)"
    )

    external_reference: Optional[str] = Field(
        default=None,
        description="Checkout session id"
    )

    payment_reference: Optional[str] = Field(
        default=None,
        description="Payment intent id"
    )

    source: PaymentFactSource = Field(
        ...,
        description="Where the fact came from"
    )


class CompletionOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_TERMINAL = "already_terminal"


class CompletionResultDTO(BaseModel):
    transaction_id: str
    kind: TransactionKind
    outcome: CompletionOutcome
    status: TransactionStatus


class CloseOutcome(str, Enum):
    CLOSED = "closed"
    ALREADY_TERMINAL = "already_terminal"


class CloseResultDTO(BaseModel):
    """Result of expiring or cancelling a transaction"""
    transaction_id: str
    outcome: CloseOutcome
    status: TransactionStatus


class TransactionStatusDTO(BaseModel):
    """Read model polled by clients after returning from checkout"""

    transaction_id: str
    kind: TransactionKind
    status: TransactionStatus
    funding_mode: FundingMode
    payer_ref: str
    payee_ref: str
    currency: str
    amount_original_cents: int
    amount_gross_cents: int
    commission_cents: int
    amount_net_cents: int
    partial_budget_cents: int
    flagged_for_review: bool
    flag_reason: Optional[str] = None
    external_reference: Optional[str] = None
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None
    ticket_tokens: list[str] = Field(default_factory=list)
    redemption_token: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    terminal_at: Optional[datetime] = None


class WebhookAckDTO(BaseModel):
    event_id: str
    event_type: str
    handled: bool = Field(..., description="False when the event type is ignored")
    outcome: str
    transaction_id: Optional[str] = None


class ReconciliationSweepResultDTO(BaseModel):
    """Summary of one reconciliation sweep run"""

    checked: int = 0
    reconciled: int = 0
    expired: int = 0
    skipped: int = 0
    errors: int = 0
    run_at: datetime
    execution_time_ms: int = 0


class ActivationResultDTO(BaseModel):
    """Summary of one activation scheduler run"""

    activated: int = 0
    completed: int = 0
    budget_settled: int = 0
    errors: int = 0
    run_at: datetime
    execution_time_ms: int = 0


class PayoutSummaryDTO(BaseModel):
    """Cumulative amounts of fulfilled transactions of a payee"""

    payee_ref: str
    fulfilled_count: int
    amount_gross_cents: int
    commission_cents: int
    amount_net_cents: int


class CancelCommandDTO(BaseModel):
    payer_ref: str = Field(..., min_length=1, description="Must match the transaction's payer")

    @field_validator("payer_ref")
    @classmethod
    def strip_payer(cls, v: str) -> str:
        return v.strip()
