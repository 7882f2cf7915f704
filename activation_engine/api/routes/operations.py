"""Operations API Routes

On-demand triggers for the periodic jobs, for operators and schedulers
that prefer HTTP over the worker processes.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.factories import build_reconciliation_sweep, build_schedule_activations
from activation_engine.adapter.repositories import (
    SqlAlchemyBudgetLedgerEntryRepository,
    SqlAlchemyBudgetLedgerRepository,
)
from activation_engine.api.error import ClientError
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.use_cases.budget import AuditBudgetLedger, BudgetAuditResultDTO
from activation_engine.app.use_cases.payments.dtos import ActivationResultDTO, ReconciliationSweepResultDTO
from activation_engine.depends import (
    get_app_config,
    get_notification_service,
    get_payment_gateway,
    get_session,
)

router = APIRouter(prefix="/operations", tags=["Operations"])


@router.post(
    "/reconciliation-sweep",
    response_model=ReconciliationSweepResultDTO,
    status_code=status.HTTP_200_OK,
)
async def run_reconciliation_sweep(
    session: AsyncSession = Depends(get_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
    config=Depends(get_app_config),
):
    """Run one reconciliation sweep over open transactions."""
    use_case = build_reconciliation_sweep(session, payment_gateway, config, notification_service)
    result = await use_case.execute()

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/activation-schedule",
    response_model=ActivationResultDTO,
    status_code=status.HTTP_200_OK,
)
async def run_activation_schedule(
    session: AsyncSession = Depends(get_session),
    config=Depends(get_app_config),
):
    """Activate scheduled boosts whose window started and complete ended ones."""
    use_case = build_schedule_activations(session, config)
    result = await use_case.execute()

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value


@router.post(
    "/budget-audit",
    response_model=BudgetAuditResultDTO,
    status_code=status.HTTP_200_OK,
)
async def run_budget_audit(
    session: AsyncSession = Depends(get_session),
):
    """Compare every ledger's remaining budget with its entry trail."""
    use_case = AuditBudgetLedger(
        SqlAlchemyBudgetLedgerRepository(session),
        SqlAlchemyBudgetLedgerEntryRepository(session),
    )
    result = await use_case.execute()

    if result.is_err():
        raise ClientError.from_error(result.error)

    return result.value
