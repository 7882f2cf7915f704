"""Budget Ledger Entry Domain Entity

Append-only audit trail of every budget ledger mutation.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, String
from activation_engine.domain.base import BaseModel, generate_uuid


class BudgetEntryType(str, Enum):
    """Budget ledger mutation types"""
    RESERVE = "reserve"                              # Budget-funded purchase
    DEDUCT = "deduct"                                # Budget share of a mixed purchase
    RESET = "reset"                                  # Period renewal
    COMMISSION_FREE_CLAIM = "commission_free_claim"  # Offer marked commission-free


class BudgetLedgerEntry(BaseModel, table=True):
    """
    Budget Ledger Entry - Immutable record of a ledger mutation

    Domain Rules:
    - Entries are append-only
    - idempotency_key is unique, so a mutation keyed on a transaction
      can only ever be recorded once
    - balance_before/balance_after snapshot the budget around the mutation
    """

    __tablename__ = "budget_ledger_entries"
    __table_args__ = (
        Index("ix_budget_ledger_entries_business_created", "business_id", "created_at"),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Unique entry identifier"
    )

    business_id: str = Field(
        description="Business owning the ledger"
    )

    ledger_id: str = Field(
        sa_column=Column(String(36), ForeignKey("budget_ledgers.id", ondelete="CASCADE"), nullable=False),
        description="Foreign key to BudgetLedger"
    )

    entry_type: BudgetEntryType = Field(
        description="reserve, deduct, reset or commission_free_claim"
    )

    amount_cents: int = Field(
        description="Budget amount moved (offer count for commission-free claims)"
    )

    balance_before: int = Field(
        description="Remaining budget before the mutation"
    )

    balance_after: int = Field(
        description="Remaining budget after the mutation"
    )

    transaction_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(36), nullable=True, index=True),
        description="Transaction that caused the mutation"
    )

    idempotency_key: str = Field(
        unique=True,
        index=True,
        description="Unique key (e.g., '{transaction_id}:budget_deduction')"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Entry timestamp (immutable)"
    )
