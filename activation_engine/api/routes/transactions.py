"""Transaction API Routes

Status polling and payer cancellation.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.repositories import (
    SqlAlchemyFulfillmentRepository,
    SqlAlchemyTransactionRepository,
)
from activation_engine.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from activation_engine.api.error import ClientError
from activation_engine.api.schemas.requests import PayerRequestSchema
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.use_cases.payments.cancel_transaction import CancelTransaction
from activation_engine.app.use_cases.payments.dtos import (
    CancelCommandDTO,
    CloseResultDTO,
    TransactionStatusDTO,
)
from activation_engine.app.use_cases.payments.get_transaction_status import GetTransactionStatus
from activation_engine.depends import get_notification_service, get_payment_gateway, get_session

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get(
    "/{transaction_id}",
    response_model=TransactionStatusDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Transaction not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "TRANSACTION_NOT_FOUND",
                            "message": "Transaction 0b7f7c2e not found"
                        }
                    }
                }
            }
        }
    }
)
async def get_transaction_status(
    transaction_id: str,
    session: AsyncSession = Depends(get_session),
):
    """
    Current status of a transaction, polled by clients returning from checkout.

    Fulfilled ticket orders include their ticket tokens, fulfilled offer
    purchases their redemption token.
    """
    use_case = GetTransactionStatus(
        SqlAlchemyTransactionRepository(session),
        SqlAlchemyFulfillmentRepository(session),
    )
    result = await use_case.execute(transaction_id)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{transaction_id}/cancel",
    response_model=CloseResultDTO,
    status_code=status.HTTP_200_OK,
)
async def cancel_transaction(
    transaction_id: str,
    request: PayerRequestSchema,
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """
    Cancel an unpaid transaction on behalf of its payer.

    **Returns:**
    - 200: Transaction cancelled (or already cancelled)
    - 403: Payer does not own the transaction
    - 409: Transaction is already closed, cannot be cancelled, or its session was already paid
    - 502: Payment session could not be closed; nothing was cancelled
    """
    use_case = CancelTransaction(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
        fulfillment_repo=SqlAlchemyFulfillmentRepository(session),
        payment_gateway=payment_gateway,
        notification_service=notification_service,
    )
    result = await use_case.execute(transaction_id, CancelCommandDTO(payer_ref=request.payer_ref))

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
