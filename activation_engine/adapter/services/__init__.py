from .unit_of_work import SqlAlchemyUnitOfWork
from .notification_service import (
    LoggingNotificationService,
    WebhookNotificationService,
    CompositeNotificationService,
    create_notification_service,
)
from .stripe_payment_gateway import (
    CircuitBreaker,
    StripePaymentGateway,
    build_payment_gateway,
    classify_stripe_error,
)

__all__ = [
    "SqlAlchemyUnitOfWork",
    "LoggingNotificationService",
    "WebhookNotificationService",
    "CompositeNotificationService",
    "create_notification_service",
    "CircuitBreaker",
    "StripePaymentGateway",
    "build_payment_gateway",
    "classify_stripe_error",
]
