"""Reconciliation Sweep Background Worker

Periodically asks the payment processor for ground truth on open
transactions, completing the ones whose confirmation was missed and
expiring the abandoned ones. Can be run as a standalone script or
integrated with a scheduler.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from activation_engine.adapter.factories import build_reconciliation_sweep
from activation_engine.adapter.services.notification_service import create_notification_service
from activation_engine.adapter.services.stripe_payment_gateway import build_payment_gateway
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.use_cases.payments.dtos import ReconciliationSweepResultDTO

logger = logging.getLogger(__name__)


class ReconciliationSweeperWorker:
    """
    Background worker for the reconciliation sweep

    Features:
    - Completes paid transactions whose webhook never arrived
    - Expires transactions past their deadline and releases held inventory
    - Safe to run concurrently with the webhook receiver
    - Can run once or continuously

    Usage:
        # Run once
        worker = ReconciliationSweeperWorker()
        result = await worker.run_once()

        # Run continuously
        worker = ReconciliationSweeperWorker()
        await worker.run_forever(interval_seconds=600)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            payment_gateway: Processor client (built from ApplicationConfig if omitted)
            notification_service: Notification port (logging + optional webhook if omitted)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        # Create engine and session factory
        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        self.payment_gateway = payment_gateway or build_payment_gateway(ApplicationConfig)
        self.notification_service = notification_service or create_notification_service(
            ApplicationConfig.NOTIFICATION_WEBHOOK_URL
        )

        logger.info("ReconciliationSweeperWorker initialized")

    async def run_once(self, now: Optional[datetime] = None) -> ReconciliationSweepResultDTO:
        """
        Run one sweep

        Returns:
            ReconciliationSweepResultDTO with counts per outcome
        """
        if not getattr(ApplicationConfig, "SWEEP_ENABLED", True):
            logger.info("Reconciliation sweep is disabled, skipping")
            return ReconciliationSweepResultDTO(run_at=datetime.utcnow())

        async with self.async_session_factory() as session:
            use_case = build_reconciliation_sweep(
                session, self.payment_gateway, ApplicationConfig, self.notification_service
            )
            result = await use_case.execute(now=now)

            if result.is_err():
                logger.error(f"Reconciliation sweep failed: {result.error.message}")
                raise RuntimeError(f"Reconciliation sweep failed: {result.error.message}")

            response = result.value
            if response.errors:
                logger.warning(f"{response.errors} transactions could not be reconciled this cycle")
            return response

    async def run_forever(self, interval_seconds: int = 600):
        """
        Run the sweep continuously at specified interval

        Args:
            interval_seconds: Seconds between sweeps (default: 10 minutes)
        """
        logger.info(f"Starting continuous reconciliation sweep with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Sweep cycle complete. Checked {result.checked}, "
                    f"reconciled {result.reconciled}, expired {result.expired} "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Sweep cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("ReconciliationSweeperWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m activation_engine.worker.reconciliation_sweeper --once

        # Run continuously with custom interval (in seconds)
        python -m activation_engine.worker.reconciliation_sweeper --interval 300
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Reconciliation Sweep Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.SWEEP_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = ReconciliationSweeperWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Reconciliation sweep complete:")
            print(f"  Checked: {result.checked}")
            print(f"  Reconciled: {result.reconciled}")
            print(f"  Expired: {result.expired}")
            print(f"  Skipped: {result.skipped}")
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
