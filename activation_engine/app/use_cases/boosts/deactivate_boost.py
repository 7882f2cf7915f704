"""DeactivateBoost Use Case"""

import logging
from datetime import datetime
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import TransactionStatus, sources_for
from .dtos import BoostCommandDTO, BoostStateDTO
from .ownership import load_owned_boost, state_error

logger = logging.getLogger(__name__)

DEACTIVATABLE_STATUSES = sources_for(TransactionStatus.DEACTIVATED)


class DeactivateBoost:
    """
    Use Case: Stop a boost before its window ends

    Business Rules:
    1. Only the business that bought the boost may deactivate it
    2. scheduled | active | paused -> deactivated, which is final
    3. The unused window is not credited back to the budget ledger
    """

    def __init__(self, uow: UnitOfWork, transaction_repo: TransactionRepository):
        self.uow = uow
        self.transaction_repo = transaction_repo

    async def execute(
        self, transaction_id: str, command: BoostCommandDTO, now: Optional[datetime] = None
    ) -> Result[BoostStateDTO]:
        now = now or datetime.utcnow()
        try:
            boost, error = await load_owned_boost(self.transaction_repo, transaction_id, command.payer_ref)
            if error:
                return Return.err(error)

            if boost.status == TransactionStatus.DEACTIVATED:
                return Return.ok(
                    BoostStateDTO(
                        transaction_id=transaction_id,
                        status=boost.status,
                        changed=False,
                        active_from=boost.active_from,
                        active_until=boost.active_until,
                    )
                )

            if boost.status not in DEACTIVATABLE_STATUSES:
                return Return.err(state_error(boost, "deactivated"))

            previous = boost.status
            moved = await self.transaction_repo.transition_status(
                transaction_id,
                DEACTIVATABLE_STATUSES,
                TransactionStatus.DEACTIVATED,
                values={"terminal_at": now, "updated_at": now},
            )
            if not moved:
                await self.uow.rollback()
                return Return.err(state_error(boost, "deactivated"))

            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.BOOST_STATE_CHANGE_FAILED,
                    message="Failed to deactivate boost",
                    reason=str(e),
                )
            )

        logger.info(f"Boost {transaction_id} deactivated from {previous.value}")
        return Return.ok(
            BoostStateDTO(
                transaction_id=transaction_id,
                status=TransactionStatus.DEACTIVATED,
                changed=True,
                active_from=boost.active_from,
                active_until=boost.active_until,
            )
        )
