"""Integration tests for the Activation Engine API

Requests run against a real SQLite database through the FastAPI app; only
the payment processor is replaced by FakePaymentGateway.
"""

import json
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient

from activation_engine.domain.budget_ledger import BudgetLedger
from activation_engine.domain.business import Business
from activation_engine.domain.catalog_item import CatalogItem, CatalogItemType
from activation_engine.domain.transaction import FundingMode, Transaction, TransactionKind, TransactionStatus


async def seed_offer(db_session, price_cents=1000, capacity=10):
    db_session.add(Business(id="business_7", name="Club Seven"))
    db_session.add(
        CatalogItem(
            id="offer_1",
            business_id="business_7",
            item_type=CatalogItemType.OFFER,
            title="Two for one",
            price_cents=price_cents,
            capacity=capacity,
        )
    )
    await db_session.commit()


async def seed_ledger(db_session, budget_cents=5000, offers=0):
    db_session.add(
        BudgetLedger(
            business_id="business_7",
            monthly_budget_remaining_cents=budget_cents,
            commission_free_offers_remaining=offers,
        )
    )
    await db_session.commit()


async def start_offer_checkout(client: AsyncClient, payer_ref="user_42"):
    return await client.post(
        "/api/checkout",
        json={"kind": "offer_purchase", "subject_refs": {"offer_id": "offer_1"}, "payer_ref": payer_ref},
    )


async def deliver(client: AsyncClient, event: dict, signature="valid"):
    return await client.post(
        "/api/webhooks/stripe",
        content=json.dumps(event).encode(),
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


class TestCheckoutFlowAPI:
    """Checkout, webhook confirmation and status polling"""

    @pytest.mark.asyncio
    async def test_offer_purchase_end_to_end(self, client: AsyncClient, db_session, payment_gateway):
        """
        Given: An offer of 1000 by a free-tier business
        When: A user checks out, pays and the webhook arrives
        Then: The transaction is fulfilled with a redemption token and counted in the payout summary
        """
        # Arrange
        await seed_offer(db_session)

        # Act - checkout
        response = await start_offer_checkout(client)

        # Assert - awaiting payment with a hosted session
        assert response.status_code == 201
        checkout = response.json()
        assert checkout["status"] == "awaiting_external_payment"
        assert checkout["amount_gross_cents"] == 1000
        assert checkout["commission_cents"] == 120
        assert checkout["amount_net_cents"] == 880
        assert checkout["external_reference"] == "cs_test_1"
        assert checkout["redirect_url"] == "https://checkout.test/cs_test_1"
        transaction_id = checkout["transaction_id"]

        # Act - processor confirms payment
        payment_gateway.mark_paid("cs_test_1")
        webhook = await deliver(client, payment_gateway.session_event("cs_test_1"))

        # Assert - applied once
        assert webhook.status_code == 200
        assert webhook.json()["outcome"] == "applied"
        assert webhook.json()["transaction_id"] == transaction_id

        status_response = await client.get(f"/api/transactions/{transaction_id}")
        assert status_response.status_code == 200
        status_body = status_response.json()
        assert status_body["status"] == "fulfilled"
        assert status_body["redemption_token"]

        payout = (await client.get("/api/payouts/business_7")).json()
        assert payout["fulfilled_count"] == 1
        assert payout["amount_net_cents"] == 880

    @pytest.mark.asyncio
    async def test_duplicate_webhook_is_acknowledged(self, client: AsyncClient, db_session, payment_gateway):
        # Arrange
        await seed_offer(db_session)
        await start_offer_checkout(client)
        payment_gateway.mark_paid("cs_test_1")
        event = payment_gateway.session_event("cs_test_1")

        # Act
        first = await deliver(client, event)
        second = await deliver(client, event)

        # Assert
        assert first.json()["outcome"] == "applied"
        assert second.status_code == 200
        assert second.json()["outcome"] == "already_terminal"
        payout = (await client.get("/api/payouts/business_7")).json()
        assert payout["fulfilled_count"] == 1

    @pytest.mark.asyncio
    async def test_bad_signature_returns_400(self, client: AsyncClient, db_session, payment_gateway):
        await seed_offer(db_session)
        await start_offer_checkout(client)
        payment_gateway.mark_paid("cs_test_1")

        response = await deliver(client, payment_gateway.session_event("cs_test_1"), signature="forged")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"

    @pytest.mark.asyncio
    async def test_unhandled_event_type_is_ignored(self, client: AsyncClient):
        event = {"id": "evt_1", "type": "customer.created", "data": {"object": {"id": "cus_1"}}}

        response = await deliver(client, event)

        assert response.status_code == 200
        assert response.json()["handled"] is False
        assert response.json()["outcome"] == "ignored"

    @pytest.mark.asyncio
    async def test_blank_payer_returns_validation_error(self, client: AsyncClient):
        response = await client.post(
            "/api/checkout",
            json={"kind": "offer_purchase", "subject_refs": {"offer_id": "offer_1"}, "payer_ref": ""},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_offer_returns_404(self, client: AsyncClient):
        response = await client.post(
            "/api/checkout",
            json={"kind": "offer_purchase", "subject_refs": {"offer_id": "missing"}, "payer_ref": "user_42"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SUBJECT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_sold_out_offer_returns_409(self, client: AsyncClient, db_session):
        await seed_offer(db_session, capacity=0)

        response = await start_offer_checkout(client)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SOLD_OUT"

    @pytest.mark.asyncio
    async def test_unknown_transaction_returns_404(self, client: AsyncClient):
        response = await client.get("/api/transactions/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TRANSACTION_NOT_FOUND"


class TestCancellationAPI:
    """Payer cancellation of unpaid transactions"""

    @pytest.mark.asyncio
    async def test_payer_cancels_unpaid_purchase(self, client: AsyncClient, db_session, payment_gateway):
        # Arrange
        await seed_offer(db_session)
        transaction_id = (await start_offer_checkout(client)).json()["transaction_id"]

        # Act
        response = await client.post(f"/api/transactions/{transaction_id}/cancel", json={"payer_ref": "user_42"})

        # Assert
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert payment_gateway.expired == ["cs_test_1"]

    @pytest.mark.asyncio
    async def test_other_payer_is_forbidden(self, client: AsyncClient, db_session):
        await seed_offer(db_session)
        transaction_id = (await start_offer_checkout(client)).json()["transaction_id"]

        response = await client.post(f"/api/transactions/{transaction_id}/cancel", json={"payer_ref": "user_99"})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_late_payment_after_cancel_is_flagged_not_fulfilled(
        self, client: AsyncClient, db_session, payment_gateway
    ):
        """
        Given: A purchase cancelled by its payer
        When: A payment for its session arrives afterwards
        Then: The webhook is acknowledged, the transaction stays cancelled and is flagged for review
        """
        # Arrange
        await seed_offer(db_session)
        transaction_id = (await start_offer_checkout(client)).json()["transaction_id"]
        await client.post(f"/api/transactions/{transaction_id}/cancel", json={"payer_ref": "user_42"})
        payment_gateway.mark_paid("cs_test_1")

        # Act
        response = await deliver(client, payment_gateway.session_event("cs_test_1"))

        # Assert
        assert response.status_code == 200
        assert response.json()["outcome"] == "already_terminal"
        status_body = (await client.get(f"/api/transactions/{transaction_id}")).json()
        assert status_body["status"] == "cancelled"
        assert status_body["flagged_for_review"] is True
        assert status_body["flag_reason"] == "payment_after_terminal"

    @pytest.mark.asyncio
    async def test_cancel_of_paid_session_is_refused(self, client: AsyncClient, db_session, payment_gateway):
        # Arrange
        await seed_offer(db_session)
        transaction_id = (await start_offer_checkout(client)).json()["transaction_id"]
        payment_gateway.mark_paid("cs_test_1")

        # Act
        response = await client.post(f"/api/transactions/{transaction_id}/cancel", json={"payer_ref": "user_42"})
        delivered = await deliver(client, payment_gateway.session_event("cs_test_1"))

        # Assert
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSACTION_STATE"
        assert delivered.json()["outcome"] == "applied"
        assert (await client.get(f"/api/transactions/{transaction_id}")).json()["status"] == "fulfilled"


async def seed_active_boost(db_session) -> str:
    boost = Transaction(
        kind=TransactionKind.OFFER_BOOST,
        subject_refs={"business_id": "business_7", "target_id": "offer_1"},
        payer_ref="business_7",
        payee_ref="platform",
        amount_original_cents=3000,
        amount_gross_cents=3000,
        commission_cents=3000,
        amount_net_cents=0,
        funding_mode=FundingMode.INTERNAL_BUDGET,
        status=TransactionStatus.ACTIVE,
        active_from=datetime.utcnow() - timedelta(hours=1),
        active_until=datetime.utcnow() + timedelta(hours=5),
    )
    boost_id = boost.id
    db_session.add(boost)
    await db_session.commit()
    return boost_id


class TestBoostAPI:
    """Pause, resume and deactivation by the owning business"""

    @pytest.mark.asyncio
    async def test_pause_resume_deactivate(self, client: AsyncClient, db_session):
        # Arrange
        boost_id = await seed_active_boost(db_session)
        owner = {"payer_ref": "business_7"}

        # Act
        paused = await client.post(f"/api/boosts/{boost_id}/pause", json=owner)
        resumed = await client.post(f"/api/boosts/{boost_id}/resume", json=owner)
        deactivated = await client.post(f"/api/boosts/{boost_id}/deactivate", json=owner)
        again = await client.post(f"/api/boosts/{boost_id}/resume", json=owner)

        # Assert
        assert paused.status_code == 200
        assert paused.json()["status"] == "paused"
        assert 0 < paused.json()["paused_remaining_seconds"] <= 5 * 3600
        assert resumed.json()["status"] == "active"
        assert deactivated.json()["status"] == "deactivated"
        assert again.status_code == 409
        assert (await client.get(f"/api/transactions/{boost_id}")).json()["status"] == "deactivated"

    @pytest.mark.asyncio
    async def test_other_business_is_forbidden(self, client: AsyncClient, db_session):
        boost_id = await seed_active_boost(db_session)

        response = await client.post(f"/api/boosts/{boost_id}/pause", json={"payer_ref": "business_9"})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_boost_returns_404(self, client: AsyncClient):
        response = await client.post("/api/boosts/missing/deactivate", json={"payer_ref": "business_7"})

        assert response.status_code == 404


class TestBudgetAPI:
    """Budget ledger endpoints"""

    @pytest.mark.asyncio
    async def test_get_budget(self, client: AsyncClient, db_session):
        await seed_ledger(db_session, budget_cents=5000, offers=2)

        response = await client.get("/api/budgets/business_7")

        assert response.status_code == 200
        assert response.json()["monthly_budget_remaining_cents"] == 5000
        assert response.json()["commission_free_offers_remaining"] == 2

    @pytest.mark.asyncio
    async def test_missing_ledger_returns_404(self, client: AsyncClient):
        response = await client.get("/api/budgets/business_9")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "LEDGER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_reserve_is_idempotent(self, client: AsyncClient, db_session):
        """
        Given: A ledger with 5000
        When: The same reservation of 3000 is posted twice
        Then: Budget is deducted once
        """
        # Arrange
        await seed_ledger(db_session, budget_cents=5000)
        payload = {"amount_cents": 3000, "idempotency_key": "boost_1:budget_deduction"}

        # Act
        first = await client.post("/api/budgets/business_7/reserve", json=payload)
        second = await client.post("/api/budgets/business_7/reserve", json=payload)

        # Assert
        assert first.status_code == 200
        assert first.json()["balance_after"] == 2000
        assert second.status_code == 200
        ledger = (await client.get("/api/budgets/business_7")).json()
        assert ledger["monthly_budget_remaining_cents"] == 2000

    @pytest.mark.asyncio
    async def test_reserve_beyond_budget_returns_402(self, client: AsyncClient, db_session):
        await seed_ledger(db_session, budget_cents=1000)

        response = await client.post(
            "/api/budgets/business_7/reserve", json={"amount_cents": 3000, "idempotency_key": "boost_2"}
        )

        assert response.status_code == 402
        assert response.json()["error"]["code"] == "INSUFFICIENT_BUDGET"

    @pytest.mark.asyncio
    async def test_reserve_rejects_non_positive_amount(self, client: AsyncClient):
        response = await client.post(
            "/api/budgets/business_7/reserve", json={"amount_cents": 0, "idempotency_key": "boost_3"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_reset_overwrites_once_per_period(self, client: AsyncClient, db_session):
        # Arrange
        await seed_ledger(db_session, budget_cents=150)
        payload = {
            "budget_cents": 10000,
            "offer_count": 3,
            "period_start": datetime(2030, 2, 1).isoformat(),
            "period_end": datetime(2030, 3, 1).isoformat(),
        }

        # Act
        first = await client.post("/api/budgets/business_7/reset", json=payload)
        await client.post(
            "/api/budgets/business_7/reserve", json={"amount_cents": 500, "idempotency_key": "boost_4"}
        )
        second = await client.post("/api/budgets/business_7/reset", json=payload)

        # Assert
        assert first.status_code == 200
        assert first.json()["monthly_budget_remaining_cents"] == 10000
        assert first.json()["commission_free_offers_remaining"] == 3
        assert second.status_code == 200
        assert second.json()["monthly_budget_remaining_cents"] == 9500


class TestOperationsAPI:
    @pytest.mark.asyncio
    async def test_activation_schedule_on_empty_database(self, client: AsyncClient):
        response = await client.post("/api/operations/activation-schedule")

        assert response.status_code == 200
        assert response.json()["activated"] == 0
        assert response.json()["completed"] == 0

    @pytest.mark.asyncio
    async def test_sweep_ignores_fresh_transactions(self, client: AsyncClient, db_session, payment_gateway):
        await seed_offer(db_session)
        await start_offer_checkout(client)
        payment_gateway.mark_paid("cs_test_1")

        response = await client.post("/api/operations/reconciliation-sweep")

        assert response.status_code == 200
        assert response.json()["checked"] == 0

    @pytest.mark.asyncio
    async def test_budget_audit(self, client: AsyncClient, db_session):
        await seed_ledger(db_session)

        response = await client.post("/api/operations/budget-audit")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
