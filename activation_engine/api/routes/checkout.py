"""Checkout API Routes

FastAPI routes that start a purchase and reopen its payment session.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.factories import (
    build_initiate_checkout,
    build_retry_checkout_session,
    checkout_settings_from_config,
)
from activation_engine.api.error import ClientError
from activation_engine.api.schemas.requests import CheckoutRequestSchema, PayerRequestSchema
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.use_cases.payments.dtos import CheckoutResponseDTO, InitiateCheckoutCommandDTO
from activation_engine.depends import (
    get_app_config,
    get_notification_service,
    get_payment_gateway,
    get_session,
)

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post(
    "",
    response_model=CheckoutResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        402: {
            "description": "Insufficient budget",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INSUFFICIENT_BUDGET",
                            "message": "Budget of business business_7 cannot cover 3000"
                        }
                    }
                }
            }
        },
        409: {"description": "Subject sold out, inactive or outside its sale window"},
        502: {"description": "Payment processor rejected the session"},
        504: {"description": "Payment processor did not answer in time"},
    }
)
async def initiate_checkout(
    request: CheckoutRequestSchema,
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
    config=Depends(get_app_config),
):
    """
    Start a checkout for a ticket order, reservation, offer purchase or boost.

    Validates the subject, prices it, persists a pending transaction and either
    completes it immediately (budget or free funding) or returns the processor's
    hosted checkout URL in `redirect_url`.

    **Returns:**
    - 201: Transaction created
    - 400/404/409: Validation failure, no transaction is created
    - 402: Budget cannot cover the boost
    - 502/504: Payment session could not be opened
    """
    command = InitiateCheckoutCommandDTO(
        kind=request.kind,
        subject_refs=request.subject_refs,
        payer_ref=request.payer_ref,
        funding=request.funding,
        customer_email=request.customer_email,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
    )

    use_case = build_initiate_checkout(
        session, payment_gateway, checkout_settings_from_config(config), notification_service
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{transaction_id}/retry",
    response_model=CheckoutResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def retry_checkout_session(
    transaction_id: str,
    request: PayerRequestSchema,
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    config=Depends(get_app_config),
):
    """
    Open a fresh payment session for a pending transaction whose session
    could not be created.
    """
    use_case = build_retry_checkout_session(session, payment_gateway, checkout_settings_from_config(config))
    result = await use_case.execute(transaction_id, payer_ref=request.payer_ref)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
