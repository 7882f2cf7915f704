"""Reservation Domain Entity

Prepaid seating reservation held while its transaction is open.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field
from activation_engine.domain.base import BaseModel, generate_uuid


class ReservationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Reservation(BaseModel, table=True):
    """
    Reservation - Seating request tied to exactly one transaction

    Status transitions: pending -> accepted (completion)
                        pending -> cancelled/expired (release)
    """

    __tablename__ = "reservations"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    transaction_id: str = Field(index=True, unique=True)
    seating_id: str = Field(index=True, description="Catalog item (seating option)")
    business_id: str = Field(index=True)
    payer_ref: str = Field(index=True)
    party_size: int = Field(default=1)
    reserved_for: Optional[datetime] = Field(default=None, description="Requested date/time")
    status: ReservationStatus = Field(default=ReservationStatus.PENDING)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
