"""Unit tests for RunReconciliationSweep use case

Tests cover:
- Paid sessions whose webhook was missed are completed
- Expired sessions and abandoned rows are expired
- Young rows, flagged rows and closed rows are left alone
- Budget-pending rows are completed or expired from the ledger trail
- Per-row failures are counted without aborting the sweep
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from activation_engine.app.services.payment_gateway import PaymentGatewayError, PaymentGatewayErrorType
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.app.use_cases.payments import InitiateCheckoutCommandDTO, RunReconciliationSweep
from activation_engine.domain.budget_ledger_entry import BudgetEntryType, BudgetLedgerEntry
from activation_engine.domain.catalog_item import CatalogItemType
from activation_engine.domain.offer_purchase import OfferPurchase, OfferPurchaseStatus
from activation_engine.domain.transaction import FundingMode, TransactionKind, TransactionStatus
from tests.fakes import build_checkout, build_sweep, seed_business, seed_item, seed_transaction

NOW = datetime(2030, 5, 1, 12, 0)


def open_session(gateway, session_id, transaction_id, amount=1000):
    gateway.sessions[session_id] = {
        "status": "open",
        "payment_status": "unpaid",
        "amount_total": amount,
        "currency": "eur",
        "transaction_id": transaction_id,
        "payment_intent": None,
    }


@pytest.fixture
def stale_offer(store, gateway):
    """Offer purchase awaiting payment for an hour"""
    seed_item(store, "offer_1", CatalogItemType.OFFER, capacity=10)
    transaction = seed_transaction(
        store,
        created_at=NOW - timedelta(hours=1),
        expires_at=NOW + timedelta(hours=23),
    )
    store.offer_purchases[transaction.id] = OfferPurchase(
        transaction_id=transaction.id, offer_id="offer_1", payer_ref="user_42"
    )
    open_session(gateway, "cs_test_1", transaction.id)
    return transaction


@pytest.mark.asyncio
class TestSweepAwaitingPayment:
    async def test_missed_webhook_is_reconciled(self, store, caller, gateway, stale_offer):
        """
        Given: A session paid at the processor but never confirmed by webhook
        When: The sweep runs
        Then: The transaction is completed from the processor's ground truth
        """
        # Arrange
        gateway.mark_paid("cs_test_1", payment_intent="pi_7")

        # Act
        result = await build_sweep(caller, gateway).execute(now=NOW)

        # Assert
        assert result.is_ok()
        summary = result.value
        assert summary.checked == 1
        assert summary.reconciled == 1
        assert summary.errors == 0
        assert stale_offer.status == TransactionStatus.FULFILLED
        assert stale_offer.payment_reference == "pi_7"
        assert store.offer_purchases[stale_offer.id].status == OfferPurchaseStatus.PAID

    async def test_expired_session_expires_transaction(self, store, caller, gateway, stale_offer):
        gateway.mark_expired("cs_test_1")

        result = await build_sweep(caller, gateway).execute(now=NOW)

        assert result.value.expired == 1
        assert stale_offer.status == TransactionStatus.EXPIRED
        assert store.offer_purchases[stale_offer.id].status == OfferPurchaseStatus.EXPIRED

    async def test_open_session_within_deadline_is_skipped(self, caller, gateway, stale_offer):
        result = await build_sweep(caller, gateway).execute(now=NOW)

        assert result.value.skipped == 1
        assert stale_offer.status == TransactionStatus.AWAITING_EXTERNAL_PAYMENT
        assert gateway.expired == []

    async def test_abandoned_session_is_closed_then_expired(self, caller, gateway, stale_offer):
        # Arrange
        stale_offer.expires_at = NOW - timedelta(minutes=5)

        # Act
        result = await build_sweep(caller, gateway).execute(now=NOW)

        # Assert
        assert result.value.expired == 1
        assert gateway.expired == ["cs_test_1"]
        assert stale_offer.status == TransactionStatus.EXPIRED

    async def test_row_older_than_max_age_is_abandoned(self, caller, gateway, stale_offer):
        stale_offer.created_at = NOW - timedelta(hours=25)

        result = await build_sweep(caller, gateway, max_age_hours=24).execute(now=NOW)

        assert result.value.expired == 1

    async def test_swept_purchase_no_longer_blocks_a_new_checkout(self, store, caller, gateway, stale_offer):
        """
        Given: An offer purchase whose deadline passed 25 hours ago, holding the payer's only allowed purchase
        When: The sweep expires it and the payer checks out the same offer again
        Then: The new checkout is accepted
        """
        # Arrange
        seed_business(store)
        stale_offer.created_at = NOW - timedelta(hours=49)
        stale_offer.expires_at = NOW - timedelta(hours=25)
        command = InitiateCheckoutCommandDTO(
            kind=TransactionKind.OFFER_PURCHASE,
            subject_refs={"offer_id": "offer_1"},
            payer_ref="user_42",
        )

        # Act
        swept = await build_sweep(caller, gateway).execute(now=NOW)
        result = await build_checkout(caller, gateway).execute(command)

        # Assert
        assert swept.value.expired == 1
        assert stale_offer.status == TransactionStatus.EXPIRED
        assert store.offer_purchases[stale_offer.id].status == OfferPurchaseStatus.EXPIRED
        assert result.is_ok()
        assert result.value.status == TransactionStatus.AWAITING_EXTERNAL_PAYMENT
        assert store.offer_purchases[result.value.transaction_id].status == OfferPurchaseStatus.PENDING

    async def test_abandoned_row_kept_when_session_cannot_be_closed(self, caller, gateway, stale_offer):
        # Arrange
        stale_offer.expires_at = NOW - timedelta(minutes=5)
        gateway.expire_session = AsyncMock(
            side_effect=PaymentGatewayError("session is complete", PaymentGatewayErrorType.PERMANENT)
        )

        # Act
        result = await build_sweep(caller, gateway).execute(now=NOW)

        # Assert
        assert result.value.skipped == 1
        assert stale_offer.status == TransactionStatus.AWAITING_EXTERNAL_PAYMENT

    async def test_young_rows_are_not_examined(self, caller, gateway, stale_offer):
        stale_offer.created_at = NOW - timedelta(minutes=10)

        result = await build_sweep(caller, gateway, min_age_minutes=30).execute(now=NOW)

        assert result.value.checked == 0

    async def test_flagged_rows_are_not_examined(self, caller, gateway, stale_offer):
        stale_offer.flagged_for_review = True
        gateway.mark_paid("cs_test_1")

        result = await build_sweep(caller, gateway).execute(now=NOW)

        assert result.value.checked == 0
        assert stale_offer.status == TransactionStatus.AWAITING_EXTERNAL_PAYMENT

    async def test_amount_mismatch_is_skipped_and_flagged(self, caller, gateway, stale_offer):
        gateway.mark_paid("cs_test_1")
        gateway.sessions["cs_test_1"]["amount_total"] = 10

        result = await build_sweep(caller, gateway).execute(now=NOW)

        assert result.value.skipped == 1
        assert stale_offer.flagged_for_review

    async def test_processor_failure_counts_as_error(self, store, caller, gateway, stale_offer):
        """
        Given: Two stale rows and a processor lookup failing for the first
        When: The sweep runs
        Then: The failure is counted and the second row is still reconciled
        """
        # Arrange
        second = seed_transaction(
            store,
            external_reference="cs_test_2",
            created_at=NOW - timedelta(minutes=50),
            expires_at=NOW + timedelta(hours=1),
        )
        store.offer_purchases[second.id] = OfferPurchase(
            transaction_id=second.id, offer_id="offer_1", payer_ref="user_43"
        )
        open_session(gateway, "cs_test_2", second.id)
        gateway.mark_paid("cs_test_2")
        original = gateway.retrieve_session

        async def flaky_retrieve(session_id):
            if session_id == "cs_test_1":
                raise PaymentGatewayError("connection reset", PaymentGatewayErrorType.TRANSIENT)
            return await original(session_id)

        gateway.retrieve_session = flaky_retrieve

        # Act
        result = await build_sweep(caller, gateway).execute(now=NOW)

        # Assert
        assert result.value.checked == 2
        assert result.value.errors == 1
        assert result.value.reconciled == 1
        assert second.status == TransactionStatus.FULFILLED


@pytest.mark.asyncio
class TestSweepPendingRows:
    async def test_pending_without_session_waits_until_abandoned(self, store, caller, gateway):
        # Arrange
        transaction = seed_transaction(
            store,
            status=TransactionStatus.PENDING,
            external_reference=None,
            created_at=NOW - timedelta(hours=2),
            expires_at=NOW + timedelta(hours=22),
        )

        # Act
        first = await build_sweep(caller, gateway).execute(now=NOW)
        transaction.expires_at = NOW - timedelta(seconds=1)
        second = await build_sweep(caller, gateway).execute(now=NOW)

        # Assert
        assert first.value.skipped == 1
        assert second.value.expired == 1
        assert transaction.status == TransactionStatus.EXPIRED

    async def test_budget_pending_with_recorded_deduction_completes(self, store, caller, gateway):
        """
        Given: A budget boost whose deduction was recorded but completion never ran
        When: The sweep runs
        Then: The boost is completed without deducting again
        """
        # Arrange
        transaction = seed_transaction(
            store,
            kind=TransactionKind.PROFILE_BOOST,
            subject_refs={"business_id": "business_7", "target_id": "business_7"},
            payer_ref="business_7",
            payee_ref="platform",
            amount_gross_cents=3000,
            commission_cents=3000,
            amount_net_cents=0,
            funding_mode=FundingMode.INTERNAL_BUDGET,
            status=TransactionStatus.PENDING,
            external_reference=None,
            created_at=NOW - timedelta(hours=1),
            active_from=NOW + timedelta(days=1),
            active_until=NOW + timedelta(days=2),
        )
        store.entries.append(
            BudgetLedgerEntry(
                business_id="business_7",
                ledger_id="ledger_1",
                entry_type=BudgetEntryType.RESERVE,
                amount_cents=3000,
                balance_before=5000,
                balance_after=2000,
                transaction_id=transaction.id,
                idempotency_key=f"{transaction.id}:budget_deduction",
            )
        )

        # Act
        result = await build_sweep(caller, gateway).execute(now=NOW)

        # Assert
        assert result.value.reconciled == 1
        assert transaction.status in (TransactionStatus.SCHEDULED, TransactionStatus.ACTIVE)
        assert len(store.entries) == 1

    async def test_budget_pending_without_deduction_expires(self, store, caller, gateway):
        transaction = seed_transaction(
            store,
            kind=TransactionKind.PROFILE_BOOST,
            subject_refs={"business_id": "business_7"},
            funding_mode=FundingMode.INTERNAL_BUDGET,
            status=TransactionStatus.PENDING,
            external_reference=None,
            created_at=NOW - timedelta(hours=1),
        )

        result = await build_sweep(caller, gateway).execute(now=NOW)

        assert result.value.expired == 1
        assert transaction.status == TransactionStatus.EXPIRED

    async def test_free_rows_are_never_examined(self, store, caller, gateway):
        seed_transaction(
            store,
            funding_mode=FundingMode.FREE,
            amount_gross_cents=0,
            commission_cents=0,
            amount_net_cents=0,
            status=TransactionStatus.PENDING,
            external_reference=None,
            created_at=NOW - timedelta(days=3),
        )

        result = await build_sweep(caller, gateway).execute(now=NOW)

        assert result.value.checked == 0


@pytest.mark.asyncio
class TestSweepErrors:
    async def test_listing_failure_returns_error(self, mock_uow):
        # Arrange
        transaction_repo = MagicMock()
        transaction_repo.list_reconcilable = AsyncMock(side_effect=RuntimeError("db unavailable"))
        use_case = RunReconciliationSweep(
            uow=mock_uow,
            transaction_repo=transaction_repo,
            entry_repo=MagicMock(),
            payment_gateway=MagicMock(),
            complete_transaction=MagicMock(),
            expire_transaction=MagicMock(),
        )

        # Act
        result = await use_case.execute(now=NOW)

        # Assert
        assert result.is_err()
        assert result.error.code == ErrorCode.RECONCILIATION_FAILED
