"""Integration tests for the SQLAlchemy repositories

Tests cover:
- Compare-and-swap status transitions
- Conditional inventory and budget decrements
- Unique idempotency keys and fingerprints
- Payout aggregation
"""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.repositories import (
    SqlAlchemyBudgetLedgerEntryRepository,
    SqlAlchemyBudgetLedgerRepository,
    SqlAlchemyCatalogRepository,
    SqlAlchemyTransactionRepository,
)
from activation_engine.domain.budget_ledger import BudgetLedger
from activation_engine.domain.budget_ledger_entry import BudgetEntryType, BudgetLedgerEntry
from activation_engine.domain.catalog_item import CatalogItem, CatalogItemType
from activation_engine.domain.transaction import FundingMode, Transaction, TransactionKind, TransactionStatus


def offer_transaction(**kwargs) -> Transaction:
    values = {
        "kind": TransactionKind.OFFER_PURCHASE,
        "subject_refs": {"offer_id": "offer_1", "business_id": "business_7"},
        "payer_ref": "user_42",
        "payee_ref": "business_7",
        "amount_original_cents": 1000,
        "amount_gross_cents": 1000,
        "commission_cents": 120,
        "amount_net_cents": 880,
        "funding_mode": FundingMode.EXTERNAL_CHARGE,
        "status": TransactionStatus.AWAITING_EXTERNAL_PAYMENT,
    }
    values.update(kwargs)
    return Transaction(**values)


@pytest.mark.asyncio
class TestTransactionRepositoryIntegration:
    async def test_transition_applies_only_from_expected_status(self, db_session: AsyncSession):
        """
        Given: A transaction awaiting payment
        When: Two callers try to close it from the open statuses
        Then: The first transition wins, the second matches no row
        """
        # Arrange
        repo = SqlAlchemyTransactionRepository(db_session)
        transaction = await repo.create(offer_transaction())
        await db_session.commit()
        open_statuses = [TransactionStatus.PENDING, TransactionStatus.AWAITING_EXTERNAL_PAYMENT]

        # Act
        first = await repo.transition_status(transaction.id, open_statuses, TransactionStatus.FULFILLED)
        second = await repo.transition_status(transaction.id, open_statuses, TransactionStatus.EXPIRED)
        await db_session.commit()

        # Assert
        assert first is True
        assert second is False
        stored = await repo.get_by_id(transaction.id)
        assert stored.status == TransactionStatus.FULFILLED

    async def test_fingerprint_is_unique(self, db_session: AsyncSession):
        # Arrange
        repo = SqlAlchemyTransactionRepository(db_session)
        first = await repo.create(offer_transaction())
        second = await repo.create(offer_transaction())
        await repo.update_fields(first.id, {"idempotency_fingerprint": "tx_1:fulfillment"})
        await db_session.commit()

        # Act & Assert
        with pytest.raises(IntegrityError):
            await repo.update_fields(second.id, {"idempotency_fingerprint": "tx_1:fulfillment"})
        await db_session.rollback()

    async def test_lookup_by_external_reference(self, db_session: AsyncSession):
        repo = SqlAlchemyTransactionRepository(db_session)
        transaction = await repo.create(offer_transaction(external_reference="cs_live_1"))
        await db_session.commit()

        found = await repo.get_by_external_reference("cs_live_1")

        assert found.id == transaction.id
        assert await repo.get_by_external_reference("cs_live_2") is None

    async def test_payout_totals_count_fulfilled_rows_of_payee(self, db_session: AsyncSession):
        # Arrange
        repo = SqlAlchemyTransactionRepository(db_session)
        await repo.create(offer_transaction(status=TransactionStatus.FULFILLED))
        await repo.create(offer_transaction(status=TransactionStatus.FULFILLED, amount_net_cents=500))
        await repo.create(offer_transaction(status=TransactionStatus.EXPIRED))
        await repo.create(offer_transaction(status=TransactionStatus.FULFILLED, payee_ref="business_8"))
        await db_session.commit()

        # Act
        count, gross, commission, net = await repo.get_payout_totals("business_7")

        # Assert
        assert count == 2
        assert gross == 2000
        assert commission == 240
        assert net == 1380


@pytest.mark.asyncio
class TestCatalogRepositoryIntegration:
    async def test_increment_sold_stops_at_capacity(self, db_session: AsyncSession):
        """
        Given: An offer with 2 units of capacity
        When: Three single units are taken
        Then: Only two increments succeed
        """
        # Arrange
        db_session.add(
            CatalogItem(
                id="offer_1",
                business_id="business_7",
                item_type=CatalogItemType.OFFER,
                title="Two for one",
                capacity=2,
            )
        )
        await db_session.commit()
        repo = SqlAlchemyCatalogRepository(db_session)

        # Act
        results = [await repo.increment_sold("offer_1", 1) for _ in range(3)]
        await db_session.commit()

        # Assert
        assert results == [True, True, False]
        item = await repo.get_item("offer_1")
        assert item.quantity_sold == 2

    async def test_unlimited_capacity_always_increments(self, db_session: AsyncSession):
        db_session.add(
            CatalogItem(id="tier_1", business_id="business_7", item_type=CatalogItemType.TICKET_TIER, title="GA")
        )
        await db_session.commit()
        repo = SqlAlchemyCatalogRepository(db_session)

        assert await repo.increment_sold("tier_1", 500) is True


@pytest.mark.asyncio
class TestBudgetLedgerRepositoryIntegration:
    async def test_deduct_only_when_sufficient(self, db_session: AsyncSession):
        # Arrange
        repo = SqlAlchemyBudgetLedgerRepository(db_session)
        ledger = await repo.create(
            BudgetLedger(business_id="business_7", monthly_budget_remaining_cents=5000)
        )
        await db_session.commit()

        # Act
        first = await repo.deduct_if_sufficient(ledger.id, 3000)
        second = await repo.deduct_if_sufficient(ledger.id, 3000)
        await db_session.commit()

        # Assert
        assert first is True
        assert second is False
        assert await repo.get_remaining(ledger.id) == 2000

    async def test_commission_free_offers_never_go_negative(self, db_session: AsyncSession):
        repo = SqlAlchemyBudgetLedgerRepository(db_session)
        ledger = await repo.create(
            BudgetLedger(business_id="business_7", monthly_budget_remaining_cents=0, commission_free_offers_remaining=1)
        )
        await db_session.commit()

        assert await repo.consume_commission_free_offer(ledger.id) is True
        assert await repo.consume_commission_free_offer(ledger.id) is False

    async def test_entry_idempotency_key_is_unique(self, db_session: AsyncSession):
        # Arrange
        ledger = await SqlAlchemyBudgetLedgerRepository(db_session).create(
            BudgetLedger(business_id="business_7", monthly_budget_remaining_cents=5000)
        )
        repo = SqlAlchemyBudgetLedgerEntryRepository(db_session)

        def entry():
            return BudgetLedgerEntry(
                business_id="business_7",
                ledger_id=ledger.id,
                entry_type=BudgetEntryType.RESERVE,
                amount_cents=3000,
                balance_before=5000,
                balance_after=2000,
                idempotency_key="boost_1:budget_deduction",
            )

        await repo.create(entry())
        await db_session.commit()

        # Act & Assert
        with pytest.raises(IntegrityError):
            await repo.create(entry())
        await db_session.rollback()
        assert (await repo.get_by_idempotency_key("boost_1:budget_deduction")).amount_cents == 3000
