"""Budget API Routes

FastAPI routes for a business's monthly promotion budget.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.factories import build_reset_budget
from activation_engine.adapter.repositories import (
    SqlAlchemyBudgetLedgerEntryRepository,
    SqlAlchemyBudgetLedgerRepository,
    SqlAlchemyCatalogRepository,
)
from activation_engine.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from activation_engine.api.error import ClientError
from activation_engine.api.schemas.requests import (
    ClaimOfferRequestSchema,
    ReserveBudgetRequestSchema,
    ResetBudgetRequestSchema,
)
from activation_engine.app.use_cases.budget import (
    BudgetLedgerDTO,
    BudgetReservationDTO,
    ClaimCommissionFreeOffer,
    ClaimCommissionFreeOfferCommandDTO,
    CommissionFreeClaimDTO,
    GetBudget,
    ReserveBudget,
    ReserveBudgetCommandDTO,
    ResetBudgetCommandDTO,
)
from activation_engine.depends import get_session
from activation_engine.libs.result import Error

router = APIRouter(prefix="/budgets", tags=["Budgets"])


@router.get(
    "/{business_id}",
    response_model=BudgetLedgerDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "No ledger for the business",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "LEDGER_NOT_FOUND",
                            "message": "No budget ledger for business business_7"
                        }
                    }
                }
            }
        }
    }
)
async def get_budget(
    business_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Remaining monthly budget and commission-free offers of a business."""
    use_case = GetBudget(SqlAlchemyBudgetLedgerRepository(session))
    result = await use_case.execute(business_id)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{business_id}/reserve",
    response_model=BudgetReservationDTO,
    status_code=status.HTTP_200_OK,
)
async def reserve_budget(
    business_id: str,
    request: ReserveBudgetRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Atomically reserve budget. Repeating a request with the same
    `idempotency_key` returns the original reservation without deducting twice.

    **Returns:**
    - 200: Budget reserved
    - 402: Remaining budget cannot cover the amount
    - 404: No ledger for the business
    """
    command = ReserveBudgetCommandDTO(
        business_id=business_id,
        amount_cents=request.amount_cents,
        idempotency_key=request.idempotency_key,
        transaction_id=request.transaction_id,
    )
    use_case = ReserveBudget(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyBudgetLedgerRepository(session),
        SqlAlchemyBudgetLedgerEntryRepository(session),
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{business_id}/reset",
    response_model=BudgetLedgerDTO,
    status_code=status.HTTP_200_OK,
)
async def reset_budget(
    business_id: str,
    request: ResetBudgetRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """Overwrite the ledger for a new billing period, once per period."""
    try:
        command = ResetBudgetCommandDTO(
            business_id=business_id,
            budget_cents=request.budget_cents,
            offer_count=request.offer_count,
            period_start=request.period_start,
            period_end=request.period_end,
            idempotency_key=request.idempotency_key,
        )
    except ValueError as e:
        raise ClientError(Error(code="VALIDATION_ERROR", message="Invalid billing period", reason=str(e)))

    use_case = build_reset_budget(session)
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{business_id}/commission-free-offers",
    response_model=CommissionFreeClaimDTO,
    status_code=status.HTTP_200_OK,
)
async def claim_commission_free_offer(
    business_id: str,
    request: ClaimOfferRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """Spend one of the period's commission-free offers on an offer of the business."""
    command = ClaimCommissionFreeOfferCommandDTO(business_id=business_id, item_id=request.item_id)
    use_case = ClaimCommissionFreeOffer(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyBudgetLedgerRepository(session),
        SqlAlchemyBudgetLedgerEntryRepository(session),
        SqlAlchemyCatalogRepository(session),
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
