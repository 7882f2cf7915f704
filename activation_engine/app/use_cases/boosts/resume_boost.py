"""ResumeBoost Use Case

Restarts a paused boost with the window time it had left.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import TransactionStatus
from .dtos import BoostCommandDTO, BoostStateDTO
from .ownership import load_owned_boost, state_error

logger = logging.getLogger(__name__)


class ResumeBoost:
    """
    Use Case: Resume a paused boost

    Business Rules:
    1. Only the business that bought the boost may resume it
    2. paused -> active; active_until moves to now + frozen remaining time
    3. A boost resumed with no time left is completed by the next scheduler run
    4. Resuming an active boost is acknowledged without change
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

            if boost.status == TransactionStatus.ACTIVE:
                return Return.ok(
                    BoostStateDTO(
                        transaction_id=transaction_id,
                        status=boost.status,
                        changed=False,
                        active_from=boost.active_from,
                        active_until=boost.active_until,
                    )
                )

            if boost.status != TransactionStatus.PAUSED:
                return Return.err(state_error(boost, "resumed"))

            active_until = now + timedelta(seconds=boost.paused_remaining_seconds or 0)
            moved = await self.transaction_repo.transition_status(
                transaction_id,
                [TransactionStatus.PAUSED],
                TransactionStatus.ACTIVE,
                values={"active_until": active_until, "paused_remaining_seconds": None, "updated_at": now},
            )
            if not moved:
                await self.uow.rollback()
                return Return.err(state_error(boost, "resumed"))

            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.BOOST_STATE_CHANGE_FAILED,
                    message="Failed to resume boost",
                    reason=str(e),
                )
            )

        logger.info(f"Boost {transaction_id} resumed until {active_until.isoformat()}")
        return Return.ok(
            BoostStateDTO(
                transaction_id=transaction_id,
                status=TransactionStatus.ACTIVE,
                changed=True,
                active_from=boost.active_from,
                active_until=active_until,
            )
        )
