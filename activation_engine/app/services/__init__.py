from .unit_of_work import UnitOfWork
from .notification_service import NotificationService
from .payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    PaymentGatewayErrorType,
    WebhookSignatureError,
    CheckoutSessionRequest,
    CheckoutSession,
    SessionStatus,
    RefundReceipt,
    PaymentEvent,
)

__all__ = [
    "UnitOfWork",
    "NotificationService",
    "PaymentGateway",
    "PaymentGatewayError",
    "PaymentGatewayErrorType",
    "WebhookSignatureError",
    "CheckoutSessionRequest",
    "CheckoutSession",
    "SessionStatus",
    "RefundReceipt",
    "PaymentEvent",
]
