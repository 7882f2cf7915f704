"""Payout API Routes"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.repositories import SqlAlchemyTransactionRepository
from activation_engine.api.error import ClientError
from activation_engine.app.use_cases.payments.dtos import PayoutSummaryDTO
from activation_engine.app.use_cases.payments.get_payout_summary import GetPayoutSummary
from activation_engine.depends import get_session

router = APIRouter(prefix="/payouts", tags=["Payouts"])


@router.get(
    "/{payee_ref}",
    response_model=PayoutSummaryDTO,
    status_code=status.HTTP_200_OK,
)
async def get_payout_summary(
    payee_ref: str,
    session: AsyncSession = Depends(get_session),
):
    """
    Cumulative gross, commission and net of a payee's fulfilled transactions.

    Payees with no sales get a zero summary.
    """
    use_case = GetPayoutSummary(SqlAlchemyTransactionRepository(session))
    result = await use_case.execute(payee_ref)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
