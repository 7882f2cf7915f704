"""Payment Gateway Interface

Contract of the external payment processor as consumed by the engine:
checkout sessions with optional split payment, ground-truth session
lookup, refunds and webhook verification.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class PaymentGatewayErrorType(str, Enum):
    """Classification of processor errors for retry logic"""
    TRANSIENT = "transient"      # Retry these
    PERMANENT = "permanent"      # Don't retry these
    RATE_LIMIT = "rate_limit"    # Retry with longer backoff
    TIMEOUT = "timeout"          # Call exceeded its deadline


class PaymentGatewayError(Exception):
    """Raised when the processor call fails"""

    def __init__(
        self,
        message: str,
        error_type: PaymentGatewayErrorType,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.original_error = original_error

    @property
    def is_retryable(self) -> bool:
        return self.error_type in (PaymentGatewayErrorType.TRANSIENT, PaymentGatewayErrorType.RATE_LIMIT)


class WebhookSignatureError(Exception):
    """Raised when an inbound event fails signature verification"""


class CheckoutSessionRequest(BaseModel):
    transaction_id: str
    amount_cents: int = Field(..., gt=0, description="Amount the processor must capture")
    currency: str
    product_name: str
    success_url: str
    cancel_url: str
    customer_email: Optional[str] = None
    application_fee_cents: Optional[int] = Field(
        default=None, description="Platform's retained amount in a split payment"
    )
    destination_account: Optional[str] = Field(
        default=None, description="Payee's connected account for a split payment"
    )
    expires_at: Optional[datetime] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class CheckoutSession(BaseModel):
    session_id: str
    url: Optional[str] = None


class SessionStatus(BaseModel):
    """Processor-side state of a checkout session"""
    session_id: str
    status: Optional[str] = Field(default=None, description="open, complete or expired")
    payment_status: Optional[str] = Field(default=None, description="paid, unpaid or no_payment_required")
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    correlation_id: Optional[str] = Field(default=None, description="transaction_id from session metadata")
    payment_reference: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def is_expired(self) -> bool:
        return self.status == "expired"


class RefundReceipt(BaseModel):
    refund_id: str
    status: Optional[str] = None


class PaymentEvent(BaseModel):
    """Verified inbound processor event"""
    event_id: str
    event_type: str
    data: dict[str, Any] = Field(default_factory=dict, description="The event's data.object")


class PaymentGateway(ABC):
    """
    Abstract payment processor

    Implementations raise PaymentGatewayError for processor failures and
    WebhookSignatureError for unverifiable events; use cases convert both
    to Result errors.
    """

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        """
        Open a hosted checkout session

        Args:
            request: Amount, correlation metadata and optional split-payment directive

        Returns:
            CheckoutSession with the processor's session id and redirect URL
        """
        pass

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> SessionStatus:
        """
        Query the processor for ground truth on a session

        Args:
            session_id: Checkout session id

        Returns:
            SessionStatus as currently reported by the processor
        """
        pass

    @abstractmethod
    async def expire_session(self, session_id: str) -> None:
        """Close an open session so it can no longer be paid"""
        pass

    @abstractmethod
    async def initiate_refund(
        self, payment_reference: str, amount_cents: int, idempotency_key: str
    ) -> RefundReceipt:
        """
        Refund a captured payment

        Args:
            payment_reference: Payment intent id
            amount_cents: Amount to refund
            idempotency_key: Key preventing duplicate refunds

        Returns:
            RefundReceipt
        """
        pass

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        """
        Verify and parse an inbound webhook event

        Raises:
            WebhookSignatureError: If the signature does not match the signing secret
        """
        pass
