"""Ticket Domain Entity

One admission per row, issued only by a completed ticket order.
"""

from datetime import datetime
from enum import Enum
from sqlmodel import Field, Column
from sqlalchemy import String, UniqueConstraint
from activation_engine.domain.base import BaseModel, generate_uuid


class TicketStatus(str, Enum):
    VALID = "valid"
    USED = "used"
    VOID = "void"


class Ticket(BaseModel, table=True):
    """
    Ticket - Admission issued for a fulfilled ticket order

    Domain Rules:
    - (transaction_id, sequence) is unique, so an order can never be issued twice
    - qr_code_token is unique and random
    """

    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("transaction_id", "sequence", name="uq_ticket_transaction_sequence"),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    transaction_id: str = Field(index=True, description="Ticket order that issued the ticket")
    tier_id: str = Field(index=True, description="Catalog item (ticket tier)")
    event_ref: str = Field(description="Event the ticket admits to")
    holder_ref: str = Field(index=True, description="User holding the ticket")
    sequence: int = Field(description="Position within the order, starting at 1")
    qr_code_token: str = Field(sa_column=Column(String(64), nullable=False, unique=True))
    status: TicketStatus = Field(default=TicketStatus.VALID)
    created_at: datetime = Field(default_factory=datetime.utcnow)
