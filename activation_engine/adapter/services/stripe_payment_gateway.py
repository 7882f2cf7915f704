"""Stripe implementation of the PaymentGateway

Wraps an injected stripe.StripeClient with:
- Exponential backoff for transient errors (tenacity)
- Circuit breaker pattern
- Per-call deadline, the SDK is synchronous so calls run in a worker thread
- Idempotent session and refund creation
- Webhook signature verification
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import stripe
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from activation_engine.app.services.payment_gateway import (
    CheckoutSession,
    CheckoutSessionRequest,
    PaymentEvent,
    PaymentGateway,
    PaymentGatewayError,
    PaymentGatewayErrorType,
    RefundReceipt,
    SessionStatus,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Circuit breaker for processor calls

    Stops calling the processor after consecutive failures and lets a trial call
    through once the timeout has elapsed.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        success_threshold: int = 2,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            timeout: Seconds before attempting to close circuit
            success_threshold: Successful calls needed to close circuit
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = self.CLOSED

    def before_call(self) -> None:
        """
        Raises:
            PaymentGatewayError: If the circuit is open
        """
        if self.state != self.OPEN:
            return
        if self.last_failure_time and time.monotonic() - self.last_failure_time > self.timeout:
            self.state = self.HALF_OPEN
            self.success_count = 0
            logger.info("Payment circuit breaker half-open")
            return
        raise PaymentGatewayError("Circuit breaker is open", PaymentGatewayErrorType.TRANSIENT)

    def on_success(self) -> None:
        self.failure_count = 0
        if self.state == self.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self.state = self.CLOSED
                logger.info("Payment circuit breaker closed")

    def on_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = self.OPEN
            logger.warning(f"Payment circuit breaker opened after {self.failure_count} failures")


def classify_stripe_error(error: stripe.StripeError) -> PaymentGatewayErrorType:
    """Classify a Stripe error for retry logic"""
    if isinstance(error, stripe.RateLimitError):
        return PaymentGatewayErrorType.RATE_LIMIT
    if isinstance(error, (stripe.APIConnectionError, stripe.APIError)):
        return PaymentGatewayErrorType.TRANSIENT
    return PaymentGatewayErrorType.PERMANENT


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, PaymentGatewayError) and error.is_retryable


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    return getattr(obj, name, None)


def _to_timestamp(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


class StripePaymentGateway(PaymentGateway):
    """
    PaymentGateway backed by Stripe Checkout

    The client is constructed once per process and injected, so tests can
    pass a MagicMock in its place.
    """

    def __init__(
        self,
        client: stripe.StripeClient,
        webhook_secret: str,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.client = client
        self.webhook_secret = webhook_secret
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.circuit_breaker = circuit_breaker or CircuitBreaker()

    async def _call(self, operation: str, func: Callable[[], Any]) -> Any:
        """Run a blocking SDK call under the breaker, deadline and retry policy"""
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._call_once(operation, func)

    async def _call_once(self, operation: str, func: Callable[[], Any]) -> Any:
        self.circuit_breaker.before_call()
        try:
            result = await asyncio.wait_for(asyncio.to_thread(func), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            self.circuit_breaker.on_failure()
            logger.error(f"Stripe {operation} timed out after {self.timeout_seconds}s")
            raise PaymentGatewayError(
                f"Stripe {operation} timed out", PaymentGatewayErrorType.TIMEOUT, e
            ) from e
        except stripe.StripeError as e:
            error_type = classify_stripe_error(e)
            if error_type != PaymentGatewayErrorType.PERMANENT:
                self.circuit_breaker.on_failure()
            logger.error(
                f"Stripe {operation} failed ({error_type.value}): "
                f"code={getattr(e, 'code', None)}, message={e}"
            )
            raise PaymentGatewayError(str(e), error_type, e) from e

        self.circuit_breaker.on_success()
        return result

    async def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": request.currency.lower(),
                        "unit_amount": request.amount_cents,
                        "product_data": {"name": request.product_name},
                    },
                    "quantity": 1,
                }
            ],
            "client_reference_id": request.transaction_id,
            "metadata": {"transaction_id": request.transaction_id, **request.metadata},
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        if request.expires_at:
            params["expires_at"] = _to_timestamp(request.expires_at)
        if request.destination_account:
            params["payment_intent_data"] = {
                "application_fee_amount": request.application_fee_cents or 0,
                "transfer_data": {"destination": request.destination_account},
            }

        logger.info(
            f"Creating checkout session for transaction {request.transaction_id}: "
            f"amount={request.amount_cents} {request.currency}"
        )
        session = await self._call(
            "checkout.sessions.create",
            lambda: self.client.checkout.sessions.create(
                params=params,
                options={"idempotency_key": f"checkout:{request.transaction_id}"},
            ),
        )
        return CheckoutSession(session_id=session.id, url=_field(session, "url"))

    async def retrieve_session(self, session_id: str) -> SessionStatus:
        session = await self._call(
            "checkout.sessions.retrieve",
            lambda: self.client.checkout.sessions.retrieve(session_id),
        )
        payment_intent = _field(session, "payment_intent")
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = _field(payment_intent, "id")

        return SessionStatus(
            session_id=session.id,
            status=_field(session, "status"),
            payment_status=_field(session, "payment_status"),
            amount_total=_field(session, "amount_total"),
            currency=_field(session, "currency"),
            correlation_id=_field(_field(session, "metadata"), "transaction_id")
            or _field(session, "client_reference_id"),
            payment_reference=payment_intent,
        )

    async def expire_session(self, session_id: str) -> None:
        await self._call(
            "checkout.sessions.expire",
            lambda: self.client.checkout.sessions.expire(session_id),
        )
        logger.info(f"Checkout session {session_id} expired at processor")

    async def initiate_refund(
        self, payment_reference: str, amount_cents: int, idempotency_key: str
    ) -> RefundReceipt:
        logger.info(f"Creating refund for {payment_reference}: amount={amount_cents}")
        refund = await self._call(
            "refunds.create",
            lambda: self.client.refunds.create(
                params={"payment_intent": payment_reference, "amount": amount_cents},
                options={"idempotency_key": idempotency_key},
            ),
        )
        return RefundReceipt(refund_id=refund.id, status=_field(refund, "status"))

    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise WebhookSignatureError(str(e)) from e
        except ValueError as e:
            logger.warning(f"Webhook payload could not be parsed: {e}")
            raise WebhookSignatureError(f"Invalid payload: {e}") from e

        body = json.loads(payload)
        return PaymentEvent(
            event_id=body["id"],
            event_type=body["type"],
            data=body.get("data", {}).get("object", {}),
        )


def build_payment_gateway(config) -> StripePaymentGateway:
    """Construct the process-wide gateway from ApplicationConfig"""
    client = stripe.StripeClient(config.STRIPE_SECRET_KEY)
    return StripePaymentGateway(
        client=client,
        webhook_secret=config.STRIPE_WEBHOOK_SECRET,
        timeout_seconds=float(config.STRIPE_TIMEOUT_SECONDS),
        max_retries=int(config.STRIPE_MAX_RETRIES),
    )
