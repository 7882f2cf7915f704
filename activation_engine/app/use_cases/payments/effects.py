"""Terminal effects applied when a transaction closes

EFFECT_APPLIERS maps each transaction kind to the coroutine that applies its
fulfillment side effects; RELEASE_HANDLERS maps kinds that hold rows while
open to the coroutine that releases them on expiry or cancellation. Both run
inside the caller's unit of work.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.use_cases.budget.ledger_operations import settle_budget_share
from activation_engine.domain.offer_purchase import OfferPurchaseStatus
from activation_engine.domain.reservation import ReservationStatus
from activation_engine.domain.ticket import Ticket
from activation_engine.domain.transaction import (
    FundingMode,
    OPEN_STATUSES,
    Transaction,
    TransactionKind,
    TransactionStatus,
    make_fingerprint,
)

logger = logging.getLogger(__name__)

FULFILLMENT_EFFECT = "fulfillment"
EXPIRY_EFFECT = "expiry"
CANCELLATION_EFFECT = "cancellation"
INVENTORY_EXHAUSTED_EFFECT = "inventory_exhausted"


class InventoryExhaustedError(Exception):
    """Raised when a capacity-guarded increment finds no units left"""

    def __init__(self, item_id: str, quantity: int):
        super().__init__(f"Catalog item {item_id} cannot supply {quantity} more unit(s)")
        self.item_id = item_id
        self.quantity = quantity


@dataclass
class EffectContext:
    catalog_repo: CatalogRepository
    fulfillment_repo: FulfillmentRepository
    ledger_repo: BudgetLedgerRepository
    entry_repo: BudgetLedgerEntryRepository
    now: datetime


def generate_qr_token() -> str:
    return secrets.token_hex(32)


def resolve_fulfilled_status(transaction: Transaction, now: datetime) -> TransactionStatus:
    """Boosts land in scheduled or active depending on their window; everything else is fulfilled"""
    if not transaction.is_boost:
        return TransactionStatus.FULFILLED
    if transaction.active_from and transaction.active_from > now:
        return TransactionStatus.SCHEDULED
    return TransactionStatus.ACTIVE


async def _take_units(ctx: EffectContext, item_id: str, quantity: int) -> None:
    if not await ctx.catalog_repo.increment_sold(item_id, quantity):
        raise InventoryExhaustedError(item_id, quantity)


async def apply_ticket_order(ctx: EffectContext, transaction: Transaction) -> Optional[dict[str, Any]]:
    refs = transaction.subject_refs
    tier_id = refs["tier_id"]
    quantity = int(refs.get("quantity", 1))

    await _take_units(ctx, tier_id, quantity)

    tickets = [
        Ticket(
            transaction_id=transaction.id,
            tier_id=tier_id,
            event_ref=refs.get("event_id") or "",
            holder_ref=transaction.payer_ref,
            sequence=sequence,
            qr_code_token=generate_qr_token(),
        )
        for sequence in range(1, quantity + 1)
    ]
    await ctx.fulfillment_repo.create_tickets(tickets)
    logger.info(f"Issued {quantity} ticket(s) for transaction {transaction.id}")
    return None


async def apply_reservation(ctx: EffectContext, transaction: Transaction) -> Optional[dict[str, Any]]:
    await _take_units(ctx, transaction.subject_refs["seating_id"], 1)

    accepted = await ctx.fulfillment_repo.transition_reservation(
        transaction.id, [ReservationStatus.PENDING], ReservationStatus.ACCEPTED
    )
    if not accepted:
        logger.warning(f"Reservation of transaction {transaction.id} was not pending")
    return None


async def apply_offer_purchase(ctx: EffectContext, transaction: Transaction) -> Optional[dict[str, Any]]:
    await _take_units(ctx, transaction.subject_refs["offer_id"], 1)

    paid = await ctx.fulfillment_repo.mark_offer_purchase_paid(
        transaction.id, generate_qr_token(), ctx.now
    )
    if not paid:
        logger.warning(f"Offer purchase of transaction {transaction.id} was not pending")
    return None


async def apply_boost(ctx: EffectContext, transaction: Transaction) -> Optional[dict[str, Any]]:
    if transaction.funding_mode != FundingMode.MIXED:
        return None

    outcome = await settle_budget_share(ctx.ledger_repo, ctx.entry_repo, transaction)
    if outcome.reserved:
        return {"budget_settled_at": ctx.now}

    # Left for the activation scheduler
    logger.warning(
        f"Budget share of transaction {transaction.id} deferred: {outcome.failure_code}"
    )
    return None


EffectApplier = Callable[[EffectContext, Transaction], Awaitable[Optional[dict[str, Any]]]]

EFFECT_APPLIERS: dict[TransactionKind, EffectApplier] = {
    TransactionKind.TICKET_ORDER: apply_ticket_order,
    TransactionKind.RESERVATION: apply_reservation,
    TransactionKind.OFFER_PURCHASE: apply_offer_purchase,
    TransactionKind.PROFILE_BOOST: apply_boost,
    TransactionKind.EVENT_BOOST: apply_boost,
    TransactionKind.OFFER_BOOST: apply_boost,
}


_RESERVATION_RELEASE = {
    TransactionStatus.EXPIRED: ReservationStatus.EXPIRED,
    TransactionStatus.CANCELLED: ReservationStatus.CANCELLED,
}

_OFFER_PURCHASE_RELEASE = {
    TransactionStatus.EXPIRED: OfferPurchaseStatus.EXPIRED,
    TransactionStatus.CANCELLED: OfferPurchaseStatus.CANCELLED,
}


async def release_reservation(
    fulfillment_repo: FulfillmentRepository, transaction: Transaction, status: TransactionStatus
) -> None:
    await fulfillment_repo.transition_reservation(
        transaction.id, [ReservationStatus.PENDING], _RESERVATION_RELEASE[status]
    )


async def release_offer_purchase(
    fulfillment_repo: FulfillmentRepository, transaction: Transaction, status: TransactionStatus
) -> None:
    await fulfillment_repo.transition_offer_purchase(
        transaction.id, [OfferPurchaseStatus.PENDING], _OFFER_PURCHASE_RELEASE[status]
    )


ReleaseHandler = Callable[[FulfillmentRepository, Transaction, TransactionStatus], Awaitable[None]]

# Ticket capacity is only taken at completion, so ticket orders hold nothing
RELEASE_HANDLERS: dict[TransactionKind, ReleaseHandler] = {
    TransactionKind.RESERVATION: release_reservation,
    TransactionKind.OFFER_PURCHASE: release_offer_purchase,
}


async def release_and_close(
    transaction_repo: TransactionRepository,
    fulfillment_repo: FulfillmentRepository,
    transaction: Transaction,
    target_status: TransactionStatus,
    effect: str,
    now: datetime,
) -> bool:
    """
    Move an open transaction to expired or cancelled and release its held rows

    Does not commit.

    Returns:
        True if this call closed the transaction, False if it was no longer open
    """
    moved = await transaction_repo.transition_status(
        transaction.id,
        OPEN_STATUSES,
        target_status,
        values={
            "idempotency_fingerprint": make_fingerprint(transaction.id, effect),
            "terminal_at": now,
            "updated_at": now,
        },
    )
    if not moved:
        return False

    release = RELEASE_HANDLERS.get(transaction.kind)
    if release:
        await release(fulfillment_repo, transaction, target_status)
    return True
