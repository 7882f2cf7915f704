"""Boost API Routes

Pause, resume and deactivation of purchased boosts by their business.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.repositories import SqlAlchemyTransactionRepository
from activation_engine.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from activation_engine.api.error import ClientError
from activation_engine.api.schemas.requests import PayerRequestSchema
from activation_engine.app.use_cases.boosts import (
    BoostCommandDTO,
    BoostStateDTO,
    DeactivateBoost,
    PauseBoost,
    ResumeBoost,
)
from activation_engine.depends import get_session

router = APIRouter(prefix="/boosts", tags=["Boosts"])

BOOST_ERRORS = {
    403: {"description": "Boost belongs to another business"},
    404: {"description": "Boost not found"},
    409: {"description": "Boost is not in a state allowing the change"},
}


async def _run(use_case_cls, transaction_id: str, request: PayerRequestSchema, session: AsyncSession):
    use_case = use_case_cls(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
    )
    result = await use_case.execute(transaction_id, BoostCommandDTO(payer_ref=request.payer_ref))

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/{transaction_id}/pause",
    response_model=BoostStateDTO,
    status_code=status.HTTP_200_OK,
    responses=BOOST_ERRORS,
)
async def pause_boost(
    transaction_id: str,
    request: PayerRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Pause an active boost. The time left in its window is frozen.
    """
    return await _run(PauseBoost, transaction_id, request, session)


@router.post(
    "/{transaction_id}/resume",
    response_model=BoostStateDTO,
    status_code=status.HTTP_200_OK,
    responses=BOOST_ERRORS,
)
async def resume_boost(
    transaction_id: str,
    request: PayerRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Resume a paused boost for the time it had left when paused.
    """
    return await _run(ResumeBoost, transaction_id, request, session)


@router.post(
    "/{transaction_id}/deactivate",
    response_model=BoostStateDTO,
    status_code=status.HTTP_200_OK,
    responses=BOOST_ERRORS,
)
async def deactivate_boost(
    transaction_id: str,
    request: PayerRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Stop a scheduled, active or paused boost for good.

    The unused part of the window is not credited back to the budget.
    """
    return await _run(DeactivateBoost, transaction_id, request, session)
