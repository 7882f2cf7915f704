"""Data Transfer Objects for Boost Lifecycle Use Cases"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from activation_engine.domain.transaction import TransactionStatus


class BoostCommandDTO(BaseModel):
    """
    Command DTO for pausing, resuming or deactivating a boost

    Only the business that bought the boost may change it.
    """

    payer_ref: str = Field(..., min_length=1, description="Business that bought the boost")

    @field_validator("payer_ref")
    @classmethod
    def strip_payer(cls, v: str) -> str:
        return v.strip()


class BoostStateDTO(BaseModel):
    transaction_id: str
    status: TransactionStatus
    changed: bool = Field(..., description="False when the boost already was in the requested state")
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None
    paused_remaining_seconds: Optional[int] = None
