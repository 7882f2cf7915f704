"""Budget Renewal Background Worker

Resets every active subscription's budget ledger for its current billing
period. Complements the invoice.paid webhook: a missed renewal event is
picked up on the next run, and a renewal already applied is skipped.
"""

import asyncio
import logging
import time
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from activation_engine.adapter.factories import build_reset_budget
from activation_engine.adapter.repositories.budget_ledger_entry_repository import (
    SqlAlchemyBudgetLedgerEntryRepository,
)
from activation_engine.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from activation_engine.app.use_cases.budget import (
    BudgetRenewalResultDTO,
    ResetBudgetCommandDTO,
    reset_idempotency_key,
)

logger = logging.getLogger(__name__)


class BudgetRenewalWorker:
    """
    Background worker for budget renewal

    Features:
    - Resets budget and commission-free offers from the subscription plan
    - Idempotent: one reset per business and period
    - Each business is renewed in its own session

    Usage:
        worker = BudgetRenewalWorker()
        result = await worker.run_once()

        await worker.run_forever(interval_seconds=3600)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("BudgetRenewalWorker initialized")

    async def run_once(self) -> BudgetRenewalResultDTO:
        """
        Renew the ledgers of all active subscriptions

        Returns:
            BudgetRenewalResultDTO with summary
        """
        if not getattr(ApplicationConfig, "BUDGET_RENEWAL_ENABLED", True):
            logger.info("Budget renewal is disabled, skipping")
            return BudgetRenewalResultDTO()

        start_time = time.time()
        renewed = 0
        already_renewed = 0
        errors = 0

        async with self.async_session_factory() as session:
            subscription_repo = SqlAlchemySubscriptionRepository(session)
            subscriptions = await subscription_repo.list_active()

        logger.info(f"Found {len(subscriptions)} active subscriptions")

        for subscription in subscriptions:
            business_id = subscription.business_id
            try:
                # A new session per business isolates failures
                async with self.async_session_factory() as business_session:
                    entry_repo = SqlAlchemyBudgetLedgerEntryRepository(business_session)
                    key = reset_idempotency_key(business_id, subscription.current_period_start)
                    if await entry_repo.get_by_idempotency_key(key):
                        already_renewed += 1
                        continue

                    command = ResetBudgetCommandDTO(
                        business_id=business_id,
                        budget_cents=subscription.monthly_budget_cents,
                        offer_count=subscription.commission_free_offers,
                        period_start=subscription.current_period_start,
                        period_end=subscription.current_period_end,
                    )
                    result = await build_reset_budget(business_session).execute(command)

                    if result.is_err():
                        logger.error(
                            f"Failed to renew budget for business {business_id}: "
                            f"{result.error.message}"
                        )
                        errors += 1
                        continue

                    renewed += 1
                    logger.info(
                        f"Renewed budget of business {business_id}: "
                        f"{subscription.monthly_budget_cents} cents, "
                        f"{subscription.commission_free_offers} commission-free offers"
                    )

            except Exception as e:
                logger.error(f"Unexpected error renewing business {business_id}: {e}")
                errors += 1

        execution_time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Budget renewal complete: {renewed} renewed, "
            f"{already_renewed} already renewed, {errors} errors, {execution_time_ms}ms"
        )

        return BudgetRenewalResultDTO(
            total_subscriptions=len(subscriptions),
            renewed=renewed,
            already_renewed=already_renewed,
            errors=errors,
            execution_time_ms=execution_time_ms,
        )

    async def run_forever(self, interval_seconds: int = 3600):
        """
        Run renewal continuously at specified interval

        Args:
            interval_seconds: Seconds between runs (default: 1 hour)
        """
        logger.info(f"Starting continuous budget renewal with {interval_seconds}s interval")

        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Budget renewal cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("BudgetRenewalWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m activation_engine.worker.budget_renewal --once
        python -m activation_engine.worker.budget_renewal --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Budget Renewal Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.BUDGET_RENEWAL_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = BudgetRenewalWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Budget renewal complete:")
            print(f"  Total subscriptions: {result.total_subscriptions}")
            print(f"  Renewed: {result.renewed}")
            print(f"  Already renewed: {result.already_renewed}")
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
