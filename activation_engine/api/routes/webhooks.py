"""Webhook API Routes

Receiver for payment processor events. The body is read raw because the
signature covers the exact bytes sent.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.factories import build_handle_webhook_event
from activation_engine.api.error import ClientError
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.use_cases.payments.dtos import WebhookAckDTO
from activation_engine.depends import get_notification_service, get_payment_gateway, get_session

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/stripe",
    response_model=WebhookAckDTO,
    status_code=status.HTTP_200_OK,
    responses={
        400: {
            "description": "Signature verification failed",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INVALID_SIGNATURE",
                            "message": "Webhook signature verification failed"
                        }
                    }
                }
            }
        },
        500: {"description": "Transient failure, the processor will redeliver"},
    }
)
async def receive_stripe_event(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """
    Verify and apply a Stripe event.

    Any 2xx tells Stripe to stop redelivering, so only transient failures
    answer 500. Duplicate, unknown and integrity-fenced events are acknowledged.
    """
    payload = await request.body()

    use_case = build_handle_webhook_event(session, payment_gateway, notification_service)
    result = await use_case.execute(payload, stripe_signature)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
