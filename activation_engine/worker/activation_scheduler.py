"""Boost Activation Background Worker

Moves scheduled boosts to active when their window opens, completes them
when it closes, and retries deferred budget settlement of mixed boosts.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from activation_engine.adapter.factories import build_schedule_activations
from activation_engine.app.use_cases.payments.dtos import ActivationResultDTO

logger = logging.getLogger(__name__)


class ActivationSchedulerWorker:
    """
    Background worker for boost activation windows

    Usage:
        worker = ActivationSchedulerWorker()
        result = await worker.run_once()

        await worker.run_forever(interval_seconds=300)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
    ):
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("ActivationSchedulerWorker initialized")

    async def run_once(self, now: Optional[datetime] = None) -> ActivationResultDTO:
        if not getattr(ApplicationConfig, "ACTIVATION_ENABLED", True):
            logger.info("Boost activation is disabled, skipping")
            return ActivationResultDTO(run_at=datetime.utcnow())

        async with self.async_session_factory() as session:
            use_case = build_schedule_activations(session, ApplicationConfig)
            result = await use_case.execute(now=now)

            if result.is_err():
                logger.error(f"Activation run failed: {result.error.message}")
                raise RuntimeError(f"Activation run failed: {result.error.message}")

            return result.value

    async def run_forever(self, interval_seconds: int = 300):
        logger.info(f"Starting continuous boost activation with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Activation cycle complete. Activated {result.activated}, "
                    f"completed {result.completed}, settled {result.budget_settled} "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Activation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("ActivationSchedulerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m activation_engine.worker.activation_scheduler --once
        python -m activation_engine.worker.activation_scheduler --interval 60
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Boost Activation Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.ACTIVATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = ActivationSchedulerWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Activation run complete:")
            print(f"  Activated: {result.activated}")
            print(f"  Completed: {result.completed}")
            print(f"  Budget settled: {result.budget_settled}")
            print(f"  Errors: {result.errors}")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
