"""Transaction Domain Entity

One row per ticket order, reservation, offer purchase or boost purchase.
Rows move through a monotonic state machine and are never deleted.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, JSON, Numeric, String
from activation_engine.domain.base import BaseModel, generate_uuid


class TransactionKind(str, Enum):
    """Deliverable being purchased"""
    TICKET_ORDER = "ticket_order"
    RESERVATION = "reservation"
    OFFER_PURCHASE = "offer_purchase"
    PROFILE_BOOST = "profile_boost"
    EVENT_BOOST = "event_boost"
    OFFER_BOOST = "offer_boost"


BOOST_KINDS = frozenset(
    {TransactionKind.PROFILE_BOOST, TransactionKind.EVENT_BOOST, TransactionKind.OFFER_BOOST}
)


class TransactionStatus(str, Enum):
    """Transaction state machine values"""
    PENDING = "pending"
    AWAITING_EXTERNAL_PAYMENT = "awaiting_external_payment"
    FULFILLED = "fulfilled"
    SCHEDULED = "scheduled"      # boost paid, window not started
    ACTIVE = "active"            # boost paid, window running
    COMPLETED = "completed"      # boost window ended
    PAUSED = "paused"            # boost window frozen by the business
    DEACTIVATED = "deactivated"  # boost stopped early by the business
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class FundingMode(str, Enum):
    """How the gross amount is paid"""
    EXTERNAL_CHARGE = "external_charge"
    INTERNAL_BUDGET = "internal_budget"
    MIXED = "mixed"
    FREE = "free"


OPEN_STATUSES = frozenset(
    {TransactionStatus.PENDING, TransactionStatus.AWAITING_EXTERNAL_PAYMENT}
)

FULFILLED_STATUSES = frozenset(
    {
        TransactionStatus.FULFILLED,
        TransactionStatus.SCHEDULED,
        TransactionStatus.ACTIVE,
        TransactionStatus.COMPLETED,
        TransactionStatus.PAUSED,
        TransactionStatus.DEACTIVATED,
    }
)

# Terminal for payment purposes; boost window states stay mutable by the scheduler
# and the owning business only
TERMINAL_STATUSES = FULFILLED_STATUSES | {TransactionStatus.EXPIRED, TransactionStatus.CANCELLED}

_CLOSING = {
    TransactionStatus.FULFILLED,
    TransactionStatus.SCHEDULED,
    TransactionStatus.ACTIVE,
    TransactionStatus.EXPIRED,
    TransactionStatus.CANCELLED,
}

ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset] = {
    TransactionStatus.PENDING: frozenset(_CLOSING | {TransactionStatus.AWAITING_EXTERNAL_PAYMENT}),
    TransactionStatus.AWAITING_EXTERNAL_PAYMENT: frozenset(_CLOSING),
    TransactionStatus.SCHEDULED: frozenset(
        {TransactionStatus.ACTIVE, TransactionStatus.COMPLETED, TransactionStatus.DEACTIVATED}
    ),
    TransactionStatus.ACTIVE: frozenset(
        {TransactionStatus.COMPLETED, TransactionStatus.PAUSED, TransactionStatus.DEACTIVATED}
    ),
    TransactionStatus.PAUSED: frozenset({TransactionStatus.ACTIVE, TransactionStatus.DEACTIVATED}),
    TransactionStatus.FULFILLED: frozenset(),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.EXPIRED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
    TransactionStatus.DEACTIVATED: frozenset(),
}


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def sources_for(target: TransactionStatus) -> list[TransactionStatus]:
    """Statuses from which ``target`` may be reached, in declaration order"""
    return [status for status in TransactionStatus if can_transition(status, target)]


def make_fingerprint(transaction_id: str, effect: str) -> str:
    """Deterministic key for a single terminal effect of a transaction"""
    return f"{transaction_id}:{effect}"


class Transaction(BaseModel, table=True):
    """
    Transaction - A purchase moving from pending to a terminal state

    Domain Rules:
    - amount_net_cents = amount_gross_cents - commission_cents, never negative
    - Status changes only along ALLOWED_TRANSITIONS
    - idempotency_fingerprint is unique; set once when the terminal effect is applied
    - Flagged rows stay non-terminal until an operator intervenes
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint(
            "amount_net_cents = amount_gross_cents - commission_cents",
            name="net_equals_gross_minus_commission",
        ),
        CheckConstraint("amount_net_cents >= 0", name="net_non_negative"),
        CheckConstraint("commission_cents >= 0", name="commission_non_negative"),
        CheckConstraint("partial_budget_cents >= 0", name="partial_budget_non_negative"),
        Index("ix_transactions_status_created_at", "status", "created_at"),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Opaque transaction identifier"
    )

    kind: TransactionKind = Field(
        description="Deliverable kind (ticket_order, reservation, offer_purchase, *_boost)"
    )

    subject_refs: dict = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="Identifiers of the purchased entity"
    )

    payer_ref: str = Field(
        index=True,
        description="Purchasing user (business for boosts)"
    )

    payee_ref: str = Field(
        index=True,
        description="Receiving business (platform for boosts)"
    )

    currency: str = Field(
        default="eur",
        sa_column=Column(String(3), nullable=False, default="eur"),
        description="ISO currency code"
    )

    amount_original_cents: int = Field(
        default=0,
        description="List price before discounts"
    )

    amount_gross_cents: int = Field(
        ge=0,
        description="Amount charged for the deliverable"
    )

    commission_percent: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(5, 2), nullable=False, default=0),
        description="Commission percent in effect at creation"
    )

    commission_cents: int = Field(
        ge=0,
        description="Platform's retained amount"
    )

    amount_net_cents: int = Field(
        ge=0,
        description="Payee's share (gross - commission)"
    )

    funding_mode: FundingMode = Field(
        description="external_charge, internal_budget, mixed or free"
    )

    partial_budget_cents: int = Field(
        default=0,
        description="Budget share of a mixed-funded transaction"
    )

    external_reference: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, index=True),
        description="Payment processor checkout session id"
    )

    payment_reference: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Payment processor payment intent id"
    )

    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING,
        description="State machine value"
    )

    flagged_for_review: bool = Field(
        default=False,
        description="Integrity fence requiring operator intervention"
    )

    flag_reason: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="Why the transaction was flagged"
    )

    idempotency_fingerprint: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True),
        description="'{id}:{effect}' of the applied terminal effect"
    )

    active_from: Optional[datetime] = Field(
        default=None,
        description="Boost window start"
    )

    active_until: Optional[datetime] = Field(
        default=None,
        description="Boost window end"
    )

    paused_remaining_seconds: Optional[int] = Field(
        default=None,
        description="Window time left when the boost was paused"
    )

    budget_settled_at: Optional[datetime] = Field(
        default=None,
        description="When the budget share was deducted from the ledger"
    )

    refund_reference: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Refund id issued after inventory exhaustion"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last mutation timestamp"
    )

    expires_at: Optional[datetime] = Field(
        default=None,
        description="After this point an unpaid transaction is abandoned"
    )

    terminal_at: Optional[datetime] = Field(
        default=None,
        description="When the transaction reached a terminal state"
    )

    @property
    def is_boost(self) -> bool:
        return self.kind in BOOST_KINDS

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def external_charge_cents(self) -> int:
        """Amount the payment processor is expected to capture"""
        if self.funding_mode == FundingMode.EXTERNAL_CHARGE:
            return self.amount_gross_cents
        if self.funding_mode == FundingMode.MIXED:
            return self.amount_gross_cents - self.partial_budget_cents
        return 0

    @property
    def budget_share_cents(self) -> int:
        """Amount owed to the budget ledger"""
        if self.funding_mode == FundingMode.INTERNAL_BUDGET:
            return self.amount_gross_cents
        if self.funding_mode == FundingMode.MIXED:
            return self.partial_budget_cents
        return 0

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "0b7f7c2e-4f0e-4a57-9d8e-1f0c9a8b7e21",
                "kind": "offer_purchase",
                "subject_refs": {"offer_id": "offer_123"},
                "payer_ref": "user_42",
                "payee_ref": "business_7",
                "currency": "eur",
                "amount_original_cents": 1000,
                "amount_gross_cents": 800,
                "commission_percent": "12.00",
                "commission_cents": 96,
                "amount_net_cents": 704,
                "funding_mode": "external_charge",
                "partial_budget_cents": 0,
                "external_reference": "cs_test_a1b2c3",
                "status": "awaiting_external_payment",
                "created_at": "2024-01-01T00:00:00Z",
                "expires_at": "2024-01-02T00:00:00Z"
            }
        }
