"""PauseBoost Use Case

Freezes a running boost window.
"""

import logging
from datetime import datetime
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import TransactionStatus
from .dtos import BoostCommandDTO, BoostStateDTO
from .ownership import load_owned_boost, state_error

logger = logging.getLogger(__name__)


class PauseBoost:
    """
    Use Case: Pause an active boost

    Business Rules:
    1. Only the business that bought the boost may pause it
    2. active -> paused, as a conditional update racing the scheduler
    3. The time left in the window is frozen and restored on resume
    4. Pausing gives no budget back; a repeated pause is acknowledged
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

            if boost.status == TransactionStatus.PAUSED:
                return Return.ok(
                    BoostStateDTO(
                        transaction_id=transaction_id,
                        status=boost.status,
                        changed=False,
                        active_from=boost.active_from,
                        active_until=boost.active_until,
                        paused_remaining_seconds=boost.paused_remaining_seconds,
                    )
                )

            if boost.status != TransactionStatus.ACTIVE:
                return Return.err(state_error(boost, "paused"))

            remaining = 0
            if boost.active_until and boost.active_until > now:
                remaining = int((boost.active_until - now).total_seconds())

            moved = await self.transaction_repo.transition_status(
                transaction_id,
                [TransactionStatus.ACTIVE],
                TransactionStatus.PAUSED,
                values={"paused_remaining_seconds": remaining, "updated_at": now},
            )
            if not moved:
                await self.uow.rollback()
                return Return.err(state_error(boost, "paused"))

            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.BOOST_STATE_CHANGE_FAILED,
                    message="Failed to pause boost",
                    reason=str(e),
                )
            )

        logger.info(f"Boost {transaction_id} paused with {remaining}s left")
        return Return.ok(
            BoostStateDTO(
                transaction_id=transaction_id,
                status=TransactionStatus.PAUSED,
                changed=True,
                active_from=boost.active_from,
                active_until=boost.active_until,
                paused_remaining_seconds=remaining,
            )
        )
