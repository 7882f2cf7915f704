"""Unit tests for InitiateCheckout use case

Tests cover:
- Pricing and commission fixed at creation
- Validation failures never create a row
- External funding opens a processor session (with split payment when possible)
- Budget-funded and free checkouts complete synchronously
- Session failure and timeout leave the row pending
"""

import pytest
from datetime import datetime, timedelta

from activation_engine.app.services.payment_gateway import PaymentGatewayError, PaymentGatewayErrorType
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.app.use_cases.payments import (
    CheckoutSettingsDTO,
    FundingPreferenceDTO,
    InitiateCheckoutCommandDTO,
    RetryCheckoutSession,
)
from activation_engine.app.use_cases.payments.session_opener import MAX_SESSION_LIFETIME
from activation_engine.domain.catalog_item import CatalogItemType
from activation_engine.domain.offer_purchase import OfferPurchase, OfferPurchaseStatus
from activation_engine.domain.reservation import ReservationStatus
from activation_engine.domain.subscription import PlanTier, Subscription, SubscriptionStatus
from activation_engine.domain.transaction import FundingMode, TransactionKind, TransactionStatus
from tests.fakes import build_checkout, seed_business, seed_item, seed_ledger


def tomorrow() -> str:
    return (datetime.utcnow().date() + timedelta(days=1)).isoformat()


def offer_command(offer_id="offer_1", payer_ref="user_42", **kwargs) -> InitiateCheckoutCommandDTO:
    return InitiateCheckoutCommandDTO(
        kind=TransactionKind.OFFER_PURCHASE,
        subject_refs={"offer_id": offer_id},
        payer_ref=payer_ref,
        **kwargs,
    )


def profile_boost_command(mode=FundingMode.INTERNAL_BUDGET, partial_budget_cents=0) -> InitiateCheckoutCommandDTO:
    return InitiateCheckoutCommandDTO(
        kind=TransactionKind.PROFILE_BOOST,
        subject_refs={
            "business_id": "business_7",
            "tier": "standard",
            "duration_mode": "daily",
            "start_date": tomorrow(),
        },
        payer_ref="business_7",
        funding=FundingPreferenceDTO(mode=mode, partial_budget_cents=partial_budget_cents),
    )


@pytest.fixture
def discounted_offer(store):
    seed_business(store)
    return seed_item(store, "offer_1", CatalogItemType.OFFER, price_cents=1000, percent_off=20, capacity=50)


@pytest.mark.asyncio
class TestExternalCheckout:
    """Checkouts paid through the processor"""

    async def test_offer_checkout_prices_and_opens_session(self, store, caller, gateway, discounted_offer):
        """
        Given: A 1000 cent offer with 20% off and the default 12% commission
        When: A user checks out
        Then: gross 800, commission 96, net 704 and a session for 800 is opened
        """
        # Act
        result = await build_checkout(caller, gateway).execute(offer_command())

        # Assert
        assert result.is_ok()
        response = result.value
        assert response.status == TransactionStatus.AWAITING_EXTERNAL_PAYMENT
        assert response.amount_gross_cents == 800
        assert response.commission_cents == 96
        assert response.amount_net_cents == 704
        assert response.redirect_url == "https://checkout.test/cs_test_1"
        assert response.external_reference == "cs_test_1"

        transaction = store.transactions[response.transaction_id]
        assert transaction.amount_original_cents == 1000
        assert transaction.external_reference == "cs_test_1"
        assert transaction.expires_at is not None

        request = gateway.requests[0]
        assert request.amount_cents == 800
        assert request.metadata["transaction_id"] == transaction.id
        assert transaction.id in request.success_url
        assert request.application_fee_cents is None

        purchase = store.offer_purchases[transaction.id]
        assert purchase.status == OfferPurchaseStatus.PENDING
        assert store.items["offer_1"].quantity_sold == 0

    async def test_split_payment_when_payee_can_receive(self, store, caller, gateway, discounted_offer):
        # Arrange
        store.businesses["business_7"].stripe_account_id = "acct_123"
        store.businesses["business_7"].payouts_enabled = True

        # Act
        await build_checkout(caller, gateway).execute(offer_command())

        # Assert
        request = gateway.requests[0]
        assert request.application_fee_cents == 96
        assert request.destination_account == "acct_123"

    async def test_commission_follows_payee_plan_tier(self, store, caller, gateway, discounted_offer):
        # Arrange
        now = datetime.utcnow()
        store.subscriptions["sub_1"] = Subscription(
            id="sub_1",
            business_id="business_7",
            status=SubscriptionStatus.ACTIVE,
            plan_tier=PlanTier.PRO,
            current_period_start=now - timedelta(days=1),
            current_period_end=now + timedelta(days=29),
        )
        settings = CheckoutSettingsDTO(commission_rates={"offer": {"pro": 5}})

        # Act
        result = await build_checkout(caller, gateway, settings).execute(offer_command())

        # Assert
        assert result.value.commission_cents == 40
        assert result.value.amount_net_cents == 760

    async def test_commission_free_offer(self, store, caller, gateway, discounted_offer):
        discounted_offer.commission_free = True

        result = await build_checkout(caller, gateway).execute(offer_command())

        assert result.value.commission_cents == 0
        assert result.value.amount_net_cents == 800

    async def test_reservation_holds_a_pending_row(self, store, caller, gateway):
        # Arrange
        seed_business(store)
        seed_item(store, "seat_1", CatalogItemType.SEATING, price_cents=2000, capacity=4, max_party_size=6)
        command = InitiateCheckoutCommandDTO(
            kind=TransactionKind.RESERVATION,
            subject_refs={"seating_id": "seat_1", "party_size": 4, "reserved_for": "2030-06-01T20:00:00+02:00"},
            payer_ref="user_42",
        )

        # Act
        result = await build_checkout(caller, gateway).execute(command)

        # Assert
        assert result.is_ok()
        reservation = store.reservations[result.value.transaction_id]
        assert reservation.status == ReservationStatus.PENDING
        assert reservation.party_size == 4
        assert reservation.reserved_for == datetime(2030, 6, 1, 18, 0)

    async def test_mixed_boost_charges_external_part_only(self, store, caller, gateway):
        # Arrange
        seed_business(store)
        seed_ledger(store, budget_cents=5000)

        # Act
        result = await build_checkout(caller, gateway).execute(
            profile_boost_command(FundingMode.MIXED, partial_budget_cents=1000)
        )

        # Assert
        assert result.is_ok()
        assert result.value.amount_gross_cents == 3000
        assert result.value.partial_budget_cents == 1000
        assert gateway.requests[0].amount_cents == 2000
        assert gateway.requests[0].application_fee_cents is None
        assert store.ledgers["business_7"].monthly_budget_remaining_cents == 5000

    async def test_session_failure_leaves_row_pending(self, store, caller, gateway, discounted_offer):
        # Arrange
        gateway.create_error = PaymentGatewayError("card_error", PaymentGatewayErrorType.PERMANENT)

        # Act
        result = await build_checkout(caller, gateway).execute(offer_command())

        # Assert
        assert result.is_err()
        assert result.error.code == ErrorCode.PAYMENT_SESSION_FAILED
        (transaction,) = store.transactions.values()
        assert transaction.status == TransactionStatus.PENDING
        assert transaction.external_reference is None

    async def test_session_timeout(self, store, caller, gateway, discounted_offer):
        gateway.create_error = PaymentGatewayError("timed out", PaymentGatewayErrorType.TIMEOUT)

        result = await build_checkout(caller, gateway).execute(offer_command())

        assert result.error.code == ErrorCode.PAYMENT_SESSION_TIMEOUT
        (transaction,) = store.transactions.values()
        assert transaction.status == TransactionStatus.PENDING

    async def test_retry_after_timeout_repeats_the_same_request(self, store, caller, gateway, discounted_offer):
        """
        Given: A checkout whose session call timed out after the payer chose redirects and an email
        When: The session is retried under the same idempotency key
        Then: The retry sends exactly the parameters of the first attempt
        """
        # Arrange
        gateway.create_error = PaymentGatewayError("timed out", PaymentGatewayErrorType.TIMEOUT)
        command = offer_command(
            customer_email="guest@example.com",
            success_url="https://app.test/paid/{transaction_id}",
            cancel_url="https://app.test/back",
        )
        await build_checkout(caller, gateway).execute(command)
        (transaction,) = store.transactions.values()
        gateway.create_error = None
        retry = RetryCheckoutSession(
            uow=caller.uow,
            transaction_repo=caller.transactions,
            catalog_repo=caller.catalog,
            payment_gateway=gateway,
            settings=CheckoutSettingsDTO(),
        )

        # Act
        result = await retry.execute(transaction.id, payer_ref="user_42")

        # Assert
        assert result.is_ok()
        first, retried = gateway.attempts
        assert retried == first
        assert retried.customer_email == "guest@example.com"
        assert retried.success_url == f"https://app.test/paid/{transaction.id}"
        assert retried.cancel_url == "https://app.test/back"
        assert retried.expires_at == transaction.created_at + MAX_SESSION_LIFETIME


@pytest.mark.asyncio
class TestSynchronousCheckout:
    """Budget-funded and free checkouts"""

    async def test_budget_funded_boost_completes(self, store, caller, gateway):
        """
        Given: A ledger with 5000 and a one-day standard profile boost (3000)
        When: Checked out with internal budget
        Then: Ledger drops to 2000, boost is scheduled, no session opened
        """
        # Arrange
        seed_business(store)
        seed_ledger(store, budget_cents=5000)

        # Act
        result = await build_checkout(caller, gateway).execute(profile_boost_command())

        # Assert
        assert result.is_ok()
        assert result.value.status == TransactionStatus.SCHEDULED
        assert result.value.redirect_url is None
        assert store.ledgers["business_7"].monthly_budget_remaining_cents == 2000
        transaction = store.transactions[result.value.transaction_id]
        assert transaction.payee_ref == "platform"
        assert transaction.commission_cents == 3000
        assert transaction.amount_net_cents == 0
        assert transaction.budget_settled_at is not None
        assert gateway.requests == []

    async def test_insufficient_budget_creates_nothing(self, store, caller, gateway):
        # Arrange
        seed_business(store)
        seed_ledger(store, budget_cents=2999)

        # Act
        result = await build_checkout(caller, gateway).execute(profile_boost_command())

        # Assert
        assert result.error.code == ErrorCode.INSUFFICIENT_BUDGET
        assert store.transactions == {}

    async def test_missing_ledger(self, store, caller, gateway):
        seed_business(store)

        result = await build_checkout(caller, gateway).execute(profile_boost_command())

        assert result.error.code == ErrorCode.LEDGER_NOT_FOUND

    async def test_free_offer_fulfills_immediately(self, store, caller, gateway, discounted_offer):
        # Arrange
        discounted_offer.percent_off = 100

        # Act
        result = await build_checkout(caller, gateway).execute(offer_command())

        # Assert
        assert result.is_ok()
        assert result.value.funding_mode == FundingMode.FREE
        assert result.value.status == TransactionStatus.FULFILLED
        assert store.offer_purchases[result.value.transaction_id].status == OfferPurchaseStatus.PAID
        assert store.items["offer_1"].quantity_sold == 1
        assert gateway.requests == []


@pytest.mark.asyncio
class TestCheckoutValidation:
    """Rejected checkouts write nothing"""

    async def test_unknown_offer(self, store, caller, gateway):
        result = await build_checkout(caller, gateway).execute(offer_command("missing"))

        assert result.error.code == ErrorCode.SUBJECT_NOT_FOUND
        assert store.transactions == {}

    async def test_inactive_offer(self, store, caller, gateway, discounted_offer):
        discounted_offer.active = False

        result = await build_checkout(caller, gateway).execute(offer_command())

        assert result.error.code == ErrorCode.SUBJECT_INACTIVE

    async def test_sale_window_closed(self, store, caller, gateway, discounted_offer):
        discounted_offer.available_until = datetime.utcnow() - timedelta(minutes=1)

        result = await build_checkout(caller, gateway).execute(offer_command())

        assert result.error.code == ErrorCode.SALE_WINDOW_CLOSED
        assert store.transactions == {}

    async def test_sold_out(self, store, caller, gateway, discounted_offer):
        discounted_offer.quantity_sold = discounted_offer.capacity

        result = await build_checkout(caller, gateway).execute(offer_command())

        assert result.error.code == ErrorCode.SOLD_OUT

    async def test_purchase_limit_reached(self, store, caller, gateway, discounted_offer):
        """
        Given: The user already holds a paid purchase of an offer limited to one per user
        When: They check out again
        Then: PURCHASE_LIMIT_REACHED
        """
        # Arrange
        store.offer_purchases["tx_old"] = OfferPurchase(
            transaction_id="tx_old", offer_id="offer_1", payer_ref="user_42", status=OfferPurchaseStatus.PAID
        )

        # Act
        result = await build_checkout(caller, gateway).execute(offer_command())

        # Assert
        assert result.error.code == ErrorCode.PURCHASE_LIMIT_REACHED

    async def test_pending_purchase_does_not_count_against_limit(self, store, caller, gateway, discounted_offer):
        store.offer_purchases["tx_old"] = OfferPurchase(
            transaction_id="tx_old", offer_id="offer_1", payer_ref="user_42"
        )

        result = await build_checkout(caller, gateway).execute(offer_command())

        assert result.is_ok()

    async def test_ticket_quantity_over_order_limit(self, store, caller, gateway):
        # Arrange
        seed_business(store)
        seed_item(store, "tier_1", CatalogItemType.TICKET_TIER, max_per_order=4, parent_ref="event_1")
        command = InitiateCheckoutCommandDTO(
            kind=TransactionKind.TICKET_ORDER,
            subject_refs={"tier_id": "tier_1", "quantity": 5},
            payer_ref="user_42",
        )

        # Act
        result = await build_checkout(caller, gateway).execute(command)

        # Assert
        assert result.error.code == ErrorCode.QUANTITY_INVALID

    async def test_party_size_out_of_range(self, store, caller, gateway):
        seed_business(store)
        seed_item(store, "seat_1", CatalogItemType.SEATING, max_party_size=4)
        command = InitiateCheckoutCommandDTO(
            kind=TransactionKind.RESERVATION,
            subject_refs={"seating_id": "seat_1", "party_size": 8},
            payer_ref="user_42",
        )

        result = await build_checkout(caller, gateway).execute(command)

        assert result.error.code == ErrorCode.PARTY_SIZE_INVALID

    async def test_budget_funding_only_for_boosts(self, store, caller, gateway, discounted_offer):
        result = await build_checkout(caller, gateway).execute(
            offer_command(funding=FundingPreferenceDTO(mode=FundingMode.INTERNAL_BUDGET))
        )

        assert result.error.code == ErrorCode.INVALID_FUNDING
        assert store.transactions == {}

    async def test_mixed_share_must_be_partial(self, store, caller, gateway):
        seed_business(store)
        seed_ledger(store, budget_cents=5000)

        result = await build_checkout(caller, gateway).execute(
            profile_boost_command(FundingMode.MIXED, partial_budget_cents=3000)
        )

        assert result.error.code == ErrorCode.INVALID_FUNDING

    async def test_boost_with_unknown_tier(self, store, caller, gateway):
        seed_business(store)
        command = profile_boost_command(FundingMode.EXTERNAL_CHARGE)
        command.subject_refs["tier"] = "gold"

        result = await build_checkout(caller, gateway).execute(command)

        assert result.error.code == ErrorCode.INVALID_BOOST_REQUEST

    async def test_event_boost_requires_known_event(self, store, caller, gateway):
        seed_business(store)
        command = InitiateCheckoutCommandDTO(
            kind=TransactionKind.EVENT_BOOST,
            subject_refs={
                "business_id": "business_7",
                "target_id": "event_404",
                "tier": "standard",
                "duration_mode": "hourly",
                "duration_hours": 3,
            },
            payer_ref="business_7",
        )

        result = await build_checkout(caller, gateway).execute(command)

        assert result.error.code == ErrorCode.SUBJECT_NOT_FOUND

    async def test_hourly_event_boost_priced_per_hour(self, store, caller, gateway):
        seed_business(store)
        seed_item(store, "tier_1", CatalogItemType.TICKET_TIER, parent_ref="event_1")
        command = InitiateCheckoutCommandDTO(
            kind=TransactionKind.EVENT_BOOST,
            subject_refs={
                "business_id": "business_7",
                "target_id": "event_1",
                "tier": "premium",
                "duration_mode": "hourly",
                "duration_hours": 3,
            },
            payer_ref="business_7",
        )

        result = await build_checkout(caller, gateway).execute(command)

        assert result.is_ok()
        assert result.value.amount_gross_cents == 3 * 850
        transaction = store.transactions[result.value.transaction_id]
        assert transaction.active_until - transaction.active_from == timedelta(hours=3)
