"""Unit tests for BudgetRenewalWorker

Tests cover:
- Renewal of every active subscription
- Skipping businesses already renewed for the period
- Per-business error isolation
- Disabled renewal
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from activation_engine.worker.budget_renewal import BudgetRenewalWorker
from activation_engine.domain.subscription import PlanTier, Subscription, SubscriptionStatus

MODULE = "activation_engine.worker.budget_renewal"


def subscription(business_id, budget_cents=5000, offers=3):
    return Subscription(
        business_id=business_id,
        status=SubscriptionStatus.ACTIVE,
        plan_tier=PlanTier.PRO,
        monthly_budget_cents=budget_cents,
        commission_free_offers=offers,
        current_period_start=datetime(2030, 2, 1),
        current_period_end=datetime(2030, 3, 1),
    )


def session_factory():
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock()
    return MagicMock(return_value=session)


def ok_result():
    result = MagicMock()
    result.is_err.return_value = False
    return result


@pytest.mark.asyncio
class TestBudgetRenewalWorker:
    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.build_reset_budget")
    @patch(f"{MODULE}.SqlAlchemyBudgetLedgerEntryRepository")
    @patch(f"{MODULE}.SqlAlchemySubscriptionRepository")
    @patch(f"{MODULE}.create_async_engine")
    @patch(f"{MODULE}.sessionmaker")
    async def test_renews_each_active_subscription(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_subscription_repo,
        mock_entry_repo,
        mock_build_reset,
        mock_app_config,
    ):
        """
        Given: Two active subscriptions not yet renewed this period
        When: run_once is called
        Then: Each ledger is reset with its plan's budget and offers
        """
        # Arrange
        mock_app_config.DB_URI = "postgresql+asyncpg://test@localhost/db"
        mock_app_config.BUDGET_RENEWAL_ENABLED = True
        mock_sessionmaker.return_value = session_factory()
        mock_subscription_repo.return_value.list_active = AsyncMock(
            return_value=[subscription("business_1"), subscription("business_2", budget_cents=9000, offers=5)]
        )
        mock_entry_repo.return_value.get_by_idempotency_key = AsyncMock(return_value=None)
        mock_build_reset.return_value.execute = AsyncMock(return_value=ok_result())

        # Act
        result = await BudgetRenewalWorker().run_once()

        # Assert
        assert result.total_subscriptions == 2
        assert result.renewed == 2
        assert result.already_renewed == 0
        assert result.errors == 0
        commands = [c.args[0] for c in mock_build_reset.return_value.execute.call_args_list]
        assert [c.business_id for c in commands] == ["business_1", "business_2"]
        assert commands[1].budget_cents == 9000
        assert commands[1].offer_count == 5
        assert commands[1].period_start == datetime(2030, 2, 1)

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.build_reset_budget")
    @patch(f"{MODULE}.SqlAlchemyBudgetLedgerEntryRepository")
    @patch(f"{MODULE}.SqlAlchemySubscriptionRepository")
    @patch(f"{MODULE}.create_async_engine")
    @patch(f"{MODULE}.sessionmaker")
    async def test_skips_business_already_renewed(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_subscription_repo,
        mock_entry_repo,
        mock_build_reset,
        mock_app_config,
    ):
        # Arrange
        mock_app_config.DB_URI = "postgresql+asyncpg://test@localhost/db"
        mock_app_config.BUDGET_RENEWAL_ENABLED = True
        mock_sessionmaker.return_value = session_factory()
        mock_subscription_repo.return_value.list_active = AsyncMock(return_value=[subscription("business_1")])
        mock_entry_repo.return_value.get_by_idempotency_key = AsyncMock(return_value=MagicMock())
        mock_build_reset.return_value.execute = AsyncMock(return_value=ok_result())

        # Act
        result = await BudgetRenewalWorker().run_once()

        # Assert
        assert result.already_renewed == 1
        assert result.renewed == 0
        mock_entry_repo.return_value.get_by_idempotency_key.assert_awaited_once_with(
            "reset:business_1:2030-02-01"
        )
        mock_build_reset.return_value.execute.assert_not_called()

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.build_reset_budget")
    @patch(f"{MODULE}.SqlAlchemyBudgetLedgerEntryRepository")
    @patch(f"{MODULE}.SqlAlchemySubscriptionRepository")
    @patch(f"{MODULE}.create_async_engine")
    @patch(f"{MODULE}.sessionmaker")
    async def test_failure_of_one_business_does_not_stop_others(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_subscription_repo,
        mock_entry_repo,
        mock_build_reset,
        mock_app_config,
    ):
        """
        Given: Three subscriptions where the first reset fails and the second raises
        When: run_once is called
        Then: The third is still renewed and both failures are counted
        """
        # Arrange
        mock_app_config.DB_URI = "postgresql+asyncpg://test@localhost/db"
        mock_app_config.BUDGET_RENEWAL_ENABLED = True
        mock_sessionmaker.return_value = session_factory()
        mock_subscription_repo.return_value.list_active = AsyncMock(
            return_value=[subscription("business_1"), subscription("business_2"), subscription("business_3")]
        )
        mock_entry_repo.return_value.get_by_idempotency_key = AsyncMock(return_value=None)

        failed = MagicMock()
        failed.is_err.return_value = True
        failed.error.message = "Failed to reset budget"
        mock_build_reset.return_value.execute = AsyncMock(
            side_effect=[failed, RuntimeError("connection lost"), ok_result()]
        )

        # Act
        result = await BudgetRenewalWorker().run_once()

        # Assert
        assert result.total_subscriptions == 3
        assert result.renewed == 1
        assert result.errors == 2

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.SqlAlchemySubscriptionRepository")
    @patch(f"{MODULE}.create_async_engine")
    async def test_run_once_skips_when_disabled(self, mock_create_engine, mock_subscription_repo, mock_app_config):
        mock_app_config.DB_URI = "postgresql+asyncpg://test@localhost/db"
        mock_app_config.BUDGET_RENEWAL_ENABLED = False

        result = await BudgetRenewalWorker().run_once()

        assert result.total_subscriptions == 0
        mock_subscription_repo.assert_not_called()

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.create_async_engine")
    async def test_shutdown_disposes_engine(self, mock_create_engine, mock_app_config):
        mock_app_config.DB_URI = "postgresql+asyncpg://test@localhost/db"
        mock_engine = MagicMock()
        mock_engine.dispose = AsyncMock()
        mock_create_engine.return_value = mock_engine

        await BudgetRenewalWorker().shutdown()

        mock_engine.dispose.assert_awaited_once()
