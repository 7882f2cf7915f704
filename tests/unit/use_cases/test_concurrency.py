"""Race tests for completion, budget and inventory

Each caller gets its own unit of work over one shared store, and
asyncio.gather interleaves them at every repository round trip.
"""

import asyncio
import pytest
from datetime import datetime, timedelta

from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.app.use_cases.payments import (
    CloseOutcome,
    CompletionOutcome,
    FundingPreferenceDTO,
    InitiateCheckoutCommandDTO,
    PaymentFactSource,
    VerifiedPaymentFactDTO,
)
from activation_engine.domain.catalog_item import CatalogItemType
from activation_engine.domain.offer_purchase import OfferPurchase, OfferPurchaseStatus
from activation_engine.domain.transaction import FundingMode, TransactionKind, TransactionStatus
from tests.fakes import (
    build_checkout,
    build_complete,
    build_expire,
    new_caller,
    seed_business,
    seed_item,
    seed_ledger,
    seed_transaction,
)


def fact(session_id, amount_cents=1000, payment_reference="pi_1", source=PaymentFactSource.WEBHOOK):
    return VerifiedPaymentFactDTO(
        amount_cents=amount_cents,
        external_reference=session_id,
        payment_reference=payment_reference,
        source=source,
    )


@pytest.fixture
def paid_offer(store):
    seed_item(store, "offer_1", CatalogItemType.OFFER, capacity=10)
    transaction = seed_transaction(store)
    store.offer_purchases[transaction.id] = OfferPurchase(
        transaction_id=transaction.id, offer_id="offer_1", payer_ref="user_42"
    )
    return transaction


@pytest.mark.asyncio
class TestConcurrentCompletion:
    async def test_webhook_and_sweep_complete_once(self, store, gateway, paid_offer):
        """
        Given: An offer purchase whose payment is reported by a webhook and the sweep at once
        When: Both complete it concurrently
        Then: One applies, the other sees it terminal, inventory is taken once
        """
        # Arrange
        webhook = build_complete(new_caller(store), gateway)
        sweep = build_complete(new_caller(store), gateway)

        # Act
        results = await asyncio.gather(
            webhook.execute(paid_offer.id, fact("cs_test_1")),
            sweep.execute(paid_offer.id, fact("cs_test_1", source=PaymentFactSource.SWEEP)),
        )

        # Assert
        outcomes = sorted(result.value.outcome for result in results)
        assert outcomes == [CompletionOutcome.ALREADY_TERMINAL, CompletionOutcome.APPLIED]
        assert paid_offer.status == TransactionStatus.FULFILLED
        assert store.items["offer_1"].quantity_sold == 1
        assert store.offer_purchases[paid_offer.id].status == OfferPurchaseStatus.PAID

    async def test_many_duplicate_deliveries_apply_once(self, store, gateway, paid_offer):
        callers = [build_complete(new_caller(store), gateway) for _ in range(5)]

        results = await asyncio.gather(
            *(use_case.execute(paid_offer.id, fact("cs_test_1")) for use_case in callers)
        )

        applied = [r for r in results if r.value.outcome == CompletionOutcome.APPLIED]
        assert len(applied) == 1
        assert store.items["offer_1"].quantity_sold == 1

    async def test_completion_racing_expiry_ends_consistent(self, store, gateway, paid_offer):
        """
        Given: A payment arriving while the sweep expires the same row
        When: Both run concurrently
        Then: Exactly one closes the row and the purchase row agrees with it
        """
        # Arrange
        complete = build_complete(new_caller(store), gateway)
        expire = build_expire(new_caller(store))

        # Act
        completed, expired = await asyncio.gather(
            complete.execute(paid_offer.id, fact("cs_test_1")),
            expire.execute(paid_offer.id, reason="abandoned"),
        )

        # Assert
        applied = completed.value.outcome == CompletionOutcome.APPLIED
        closed = expired.value.outcome == CloseOutcome.CLOSED
        assert applied != closed
        purchase = store.offer_purchases[paid_offer.id]
        if applied:
            assert paid_offer.status == TransactionStatus.FULFILLED
            assert purchase.status == OfferPurchaseStatus.PAID
            assert store.items["offer_1"].quantity_sold == 1
        else:
            assert paid_offer.status == TransactionStatus.EXPIRED
            assert purchase.status == OfferPurchaseStatus.EXPIRED
            assert store.items["offer_1"].quantity_sold == 0


@pytest.mark.asyncio
class TestConcurrentBudget:
    async def test_two_boosts_cannot_overspend_budget(self, store, gateway):
        """
        Given: A ledger with 5000 and two 3000 profile boosts funded from budget
        When: Both check out concurrently
        Then: One is scheduled, the other is refused and its row stays pending, ledger at 2000
        """
        # Arrange
        seed_business(store)
        seed_ledger(store, budget_cents=5000)
        start_date = (datetime.utcnow().date() + timedelta(days=1)).isoformat()

        def boost_command():
            return InitiateCheckoutCommandDTO(
                kind=TransactionKind.PROFILE_BOOST,
                subject_refs={
                    "business_id": "business_7",
                    "tier": "standard",
                    "duration_mode": "daily",
                    "start_date": start_date,
                },
                payer_ref="business_7",
                funding=FundingPreferenceDTO(mode=FundingMode.INTERNAL_BUDGET),
            )

        first = build_checkout(new_caller(store), gateway)
        second = build_checkout(new_caller(store), gateway)

        # Act
        results = await asyncio.gather(first.execute(boost_command()), second.execute(boost_command()))

        # Assert
        succeeded = [r for r in results if r.is_ok()]
        refused = [r for r in results if r.is_err()]
        assert len(succeeded) == 1
        assert len(refused) == 1
        assert refused[0].error.code == ErrorCode.INSUFFICIENT_BUDGET
        assert succeeded[0].value.status == TransactionStatus.SCHEDULED
        assert store.ledgers["business_7"].monthly_budget_remaining_cents == 2000
        assert len(store.entries) == 1
        statuses = sorted(t.status.value for t in store.transactions.values())
        assert statuses == [TransactionStatus.PENDING.value, TransactionStatus.SCHEDULED.value]


@pytest.mark.asyncio
class TestConcurrentInventory:
    async def test_last_ticket_sold_once_and_loser_refunded(self, store, gateway):
        """
        Given: A ticket tier with one unit left and two paid sessions for it
        When: Both payments complete concurrently
        Then: One order gets the ticket, the other is cancelled and refunded
        """
        # Arrange
        seed_item(store, "tier_1", CatalogItemType.TICKET_TIER, capacity=1, parent_ref="event_1")
        orders = [
            seed_transaction(
                store,
                kind=TransactionKind.TICKET_ORDER,
                subject_refs={"tier_id": "tier_1", "event_id": "event_1", "quantity": 1, "business_id": "business_7"},
                payer_ref=f"user_{n}",
                external_reference=f"cs_test_{n}",
            )
            for n in (1, 2)
        ]
        callers = [build_complete(new_caller(store), gateway) for _ in orders]

        # Act
        results = await asyncio.gather(
            *(
                use_case.execute(order.id, fact(order.external_reference, payment_reference=f"pi_{n}"))
                for n, (use_case, order) in enumerate(zip(callers, orders), start=1)
            )
        )

        # Assert
        assert sorted(r.is_ok() for r in results) == [False, True]
        loser_result = next(r for r in results if r.is_err())
        assert loser_result.error.code == ErrorCode.INVENTORY_EXHAUSTED
        assert store.items["tier_1"].quantity_sold == 1
        assert len(store.tickets) == 1

        statuses = {order.status for order in orders}
        assert statuses == {TransactionStatus.FULFILLED, TransactionStatus.CANCELLED}
        loser = next(order for order in orders if order.status == TransactionStatus.CANCELLED)
        assert loser.idempotency_fingerprint == f"{loser.id}:inventory_exhausted"
        assert loser.refund_reference == "re_1"
        loser_intent = f"pi_{orders.index(loser) + 1}"
        assert gateway.refunds == [(loser_intent, 1000, f"refund:{loser.id}")]
