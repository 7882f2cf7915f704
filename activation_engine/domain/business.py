"""Business Domain Entity

Payee profile: where a business's share of a sale is settled.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field
from activation_engine.domain.base import BaseModel, generate_uuid


class Business(BaseModel, table=True):
    __tablename__ = "businesses"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    name: str
    stripe_account_id: Optional[str] = Field(default=None, description="Connected account for destination charges")
    payouts_enabled: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def settlement_account(self) -> Optional[str]:
        """Connected account usable as a transfer destination, if any"""
        if self.stripe_account_id and self.payouts_enabled:
            return self.stripe_account_id
        return None
