"""Per-kind checkout planning

Each planner validates that its subject is purchasable and prices it. The
checkout use case picks the planner from CHECKOUT_PLANNERS; a validation
failure raises CheckoutValidationError before any row is written.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Optional
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.catalog_item import CatalogItem, CatalogItemType
from activation_engine.domain.offer_purchase import OfferPurchase
from activation_engine.domain.pricing import (
    BoostDurationMode,
    BoostTier,
    discounted_price,
    quote_daily_boost,
    quote_hourly_boost,
)
from activation_engine.domain.reservation import Reservation
from activation_engine.domain.transaction import BOOST_KINDS, FundingMode, Transaction, TransactionKind
from .dtos import FundingPreferenceDTO, InitiateCheckoutCommandDTO

# Offers without an explicit per-user cap may be bought once
DEFAULT_OFFER_MAX_PER_USER = 1

BOOST_PRODUCT_NAMES = {
    TransactionKind.PROFILE_BOOST: "Profile boost",
    TransactionKind.EVENT_BOOST: "Event boost",
    TransactionKind.OFFER_BOOST: "Offer boost",
}


class CheckoutValidationError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class PlanningContext:
    catalog_repo: CatalogRepository
    fulfillment_repo: FulfillmentRepository
    platform_payee_ref: str
    now: datetime


@dataclass
class CheckoutPlan:
    """Priced, validated subject ready to become a transaction row"""
    payee_ref: str
    business_id: str
    product_name: str
    amount_original_cents: int
    amount_gross_cents: int
    subject_refs: dict[str, Any] = field(default_factory=dict)
    commission_free: bool = False
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None


def _require(refs: dict[str, Any], key: str, code: str = ErrorCode.SUBJECT_NOT_FOUND) -> Any:
    value = refs.get(key)
    if value in (None, ""):
        raise CheckoutValidationError(code, f"subject_refs.{key} is required")
    return value


def _as_int(value: Any, code: str, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise CheckoutValidationError(code, f"{name} must be an integer")


async def _load_item(ctx: PlanningContext, item_id: str, item_type: CatalogItemType) -> CatalogItem:
    item = await ctx.catalog_repo.get_item(item_id)
    if not item or item.item_type != item_type:
        raise CheckoutValidationError(
            ErrorCode.SUBJECT_NOT_FOUND, f"{item_type.value} {item_id} not found"
        )
    if not item.active:
        raise CheckoutValidationError(ErrorCode.SUBJECT_INACTIVE, f"{item_type.value} {item_id} is not active")
    return item


def _check_sale_window(ctx: PlanningContext, item: CatalogItem) -> None:
    if not item.is_on_sale(ctx.now):
        raise CheckoutValidationError(
            ErrorCode.SALE_WINDOW_CLOSED, f"{item.title} is not on sale"
        )


def _check_remaining(item: CatalogItem, quantity: int) -> None:
    if item.remaining is not None and quantity > item.remaining:
        raise CheckoutValidationError(
            ErrorCode.SOLD_OUT,
            f"{item.title} has {item.remaining} unit(s) left, {quantity} requested",
        )


async def plan_ticket_order(ctx: PlanningContext, command: InitiateCheckoutCommandDTO) -> CheckoutPlan:
    refs = command.subject_refs
    tier = await _load_item(ctx, _require(refs, "tier_id"), CatalogItemType.TICKET_TIER)
    _check_sale_window(ctx, tier)

    quantity = _as_int(refs.get("quantity", 1), ErrorCode.QUANTITY_INVALID, "quantity")
    if quantity < 1 or (tier.max_per_order is not None and quantity > tier.max_per_order):
        raise CheckoutValidationError(
            ErrorCode.QUANTITY_INVALID,
            f"quantity must be between 1 and {tier.max_per_order or 'capacity'}",
        )
    _check_remaining(tier, quantity)

    gross = tier.price_cents * quantity
    return CheckoutPlan(
        payee_ref=tier.business_id,
        business_id=tier.business_id,
        product_name=f"{tier.title} x{quantity}",
        amount_original_cents=gross,
        amount_gross_cents=gross,
        subject_refs={
            "tier_id": tier.id,
            "quantity": quantity,
            "event_id": tier.parent_ref,
            "business_id": tier.business_id,
        },
    )


async def plan_reservation(ctx: PlanningContext, command: InitiateCheckoutCommandDTO) -> CheckoutPlan:
    refs = command.subject_refs
    seating = await _load_item(ctx, _require(refs, "seating_id"), CatalogItemType.SEATING)
    _check_sale_window(ctx, seating)

    party_size = _as_int(refs.get("party_size", 1), ErrorCode.PARTY_SIZE_INVALID, "party_size")
    if not seating.min_party_size <= party_size <= seating.max_party_size:
        raise CheckoutValidationError(
            ErrorCode.PARTY_SIZE_INVALID,
            f"party_size must be between {seating.min_party_size} and {seating.max_party_size}",
        )
    _check_remaining(seating, 1)

    reserved_for = refs.get("reserved_for")
    if reserved_for:
        reserved_for = _naive_utc(
            _parse_temporal(datetime.fromisoformat, reserved_for, "reserved_for", ErrorCode.INVALID_SUBJECT_REFS)
        ).isoformat()

    return CheckoutPlan(
        payee_ref=seating.business_id,
        business_id=seating.business_id,
        product_name=f"Reservation: {seating.title}",
        amount_original_cents=seating.price_cents,
        amount_gross_cents=seating.price_cents,
        subject_refs={
            "seating_id": seating.id,
            "party_size": party_size,
            "reserved_for": reserved_for,
            "event_id": seating.parent_ref,
            "business_id": seating.business_id,
        },
    )


async def plan_offer_purchase(ctx: PlanningContext, command: InitiateCheckoutCommandDTO) -> CheckoutPlan:
    refs = command.subject_refs
    offer = await _load_item(ctx, _require(refs, "offer_id"), CatalogItemType.OFFER)
    _check_sale_window(ctx, offer)
    _check_remaining(offer, 1)

    max_per_user = offer.max_per_user if offer.max_per_user is not None else DEFAULT_OFFER_MAX_PER_USER
    purchased = await ctx.fulfillment_repo.count_counted_offer_purchases(offer.id, command.payer_ref)
    if purchased >= max_per_user:
        raise CheckoutValidationError(
            ErrorCode.PURCHASE_LIMIT_REACHED,
            f"Offer {offer.id} can be purchased {max_per_user} time(s) per user",
        )

    return CheckoutPlan(
        payee_ref=offer.business_id,
        business_id=offer.business_id,
        product_name=offer.title,
        amount_original_cents=offer.price_cents,
        amount_gross_cents=discounted_price(offer.price_cents, offer.percent_off),
        subject_refs={"offer_id": offer.id, "business_id": offer.business_id},
        commission_free=offer.commission_free,
    )


def _parse_boost_enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise CheckoutValidationError(ErrorCode.INVALID_BOOST_REQUEST, f"{name} must be one of: {allowed}")


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_temporal(
    parser: Callable[[str], Any], value: Any, name: str, code: str = ErrorCode.INVALID_BOOST_REQUEST
):
    if isinstance(value, (date, datetime)):
        return value
    try:
        return parser(str(value))
    except ValueError:
        raise CheckoutValidationError(code, f"{name} is not a valid ISO value")


async def plan_boost(ctx: PlanningContext, command: InitiateCheckoutCommandDTO) -> CheckoutPlan:
    refs = command.subject_refs
    business_id = _require(refs, "business_id", ErrorCode.INVALID_BOOST_REQUEST)
    business = await ctx.catalog_repo.get_business(business_id)
    if not business:
        raise CheckoutValidationError(ErrorCode.SUBJECT_NOT_FOUND, f"Business {business_id} not found")

    target_id = refs.get("target_id")
    if command.kind == TransactionKind.OFFER_BOOST:
        target_id = _require(refs, "target_id", ErrorCode.INVALID_BOOST_REQUEST)
        offer = await ctx.catalog_repo.get_item(target_id)
        if not offer or offer.item_type != CatalogItemType.OFFER or offer.business_id != business_id:
            raise CheckoutValidationError(ErrorCode.SUBJECT_NOT_FOUND, f"Offer {target_id} not found")
    elif command.kind == TransactionKind.EVENT_BOOST:
        target_id = _require(refs, "target_id", ErrorCode.INVALID_BOOST_REQUEST)
        if not await ctx.catalog_repo.has_event(business_id, target_id):
            raise CheckoutValidationError(ErrorCode.SUBJECT_NOT_FOUND, f"Event {target_id} not found")
    else:
        target_id = business_id

    tier = _parse_boost_enum(BoostTier, refs.get("tier"), "tier")
    mode = _parse_boost_enum(BoostDurationMode, refs.get("duration_mode"), "duration_mode")

    try:
        if mode == BoostDurationMode.DAILY:
            start_date = _require(refs, "start_date", ErrorCode.INVALID_BOOST_REQUEST)
            start = _parse_temporal(date.fromisoformat, start_date, "start_date")
            end = _parse_temporal(date.fromisoformat, refs.get("end_date") or start, "end_date")
            quote = quote_daily_boost(command.kind, tier, start, end)
        else:
            start_at = _naive_utc(
                _parse_temporal(datetime.fromisoformat, refs.get("start_at") or ctx.now, "start_at")
            )
            duration_hours = _require(refs, "duration_hours", ErrorCode.INVALID_BOOST_REQUEST)
            hours = _as_int(duration_hours, ErrorCode.INVALID_BOOST_REQUEST, "duration_hours")
            quote = quote_hourly_boost(command.kind, tier, start_at, hours)
    except ValueError as e:
        raise CheckoutValidationError(ErrorCode.INVALID_BOOST_REQUEST, str(e))

    if quote.active_until <= ctx.now:
        raise CheckoutValidationError(ErrorCode.INVALID_BOOST_REQUEST, "Boost window has already ended")

    return CheckoutPlan(
        payee_ref=ctx.platform_payee_ref,
        business_id=business_id,
        product_name=f"{BOOST_PRODUCT_NAMES[command.kind]} ({tier.value}, {quote.units} x {mode.value})",
        amount_original_cents=quote.total_cents,
        amount_gross_cents=quote.total_cents,
        subject_refs={
            "business_id": business_id,
            "target_id": target_id,
            "tier": tier.value,
            "duration_mode": mode.value,
            "units": quote.units,
            "unit_rate_cents": quote.unit_rate_cents,
        },
        active_from=quote.active_from,
        active_until=quote.active_until,
    )


CheckoutPlanner = Callable[[PlanningContext, InitiateCheckoutCommandDTO], Awaitable[CheckoutPlan]]

CHECKOUT_PLANNERS: dict[TransactionKind, CheckoutPlanner] = {
    TransactionKind.TICKET_ORDER: plan_ticket_order,
    TransactionKind.RESERVATION: plan_reservation,
    TransactionKind.OFFER_PURCHASE: plan_offer_purchase,
    TransactionKind.PROFILE_BOOST: plan_boost,
    TransactionKind.EVENT_BOOST: plan_boost,
    TransactionKind.OFFER_BOOST: plan_boost,
}


def resolve_funding(kind: TransactionKind, gross_cents: int, preference: FundingPreferenceDTO) -> FundingMode:
    """
    Decide the funding mode of a priced checkout

    Raises:
        CheckoutValidationError: INVALID_FUNDING when the preference is not allowed
    """
    if gross_cents == 0:
        return FundingMode.FREE

    mode = preference.mode
    if mode == FundingMode.FREE:
        raise CheckoutValidationError(ErrorCode.INVALID_FUNDING, "Only zero-priced checkouts are free")

    if mode in (FundingMode.INTERNAL_BUDGET, FundingMode.MIXED) and kind not in BOOST_KINDS:
        raise CheckoutValidationError(
            ErrorCode.INVALID_FUNDING, f"{mode.value} funding is only available for boosts"
        )

    if mode == FundingMode.MIXED and not 0 < preference.partial_budget_cents < gross_cents:
        raise CheckoutValidationError(
            ErrorCode.INVALID_FUNDING,
            f"partial_budget_cents must be between 1 and {gross_cents - 1}",
        )
    return mode


async def hold_reservation(fulfillment_repo: FulfillmentRepository, transaction: Transaction) -> None:
    refs = transaction.subject_refs
    reserved_for = refs.get("reserved_for")
    await fulfillment_repo.create_reservation(
        Reservation(
            transaction_id=transaction.id,
            seating_id=refs["seating_id"],
            business_id=refs["business_id"],
            payer_ref=transaction.payer_ref,
            party_size=refs.get("party_size", 1),
            reserved_for=datetime.fromisoformat(reserved_for) if reserved_for else None,
        )
    )


async def hold_offer_purchase(fulfillment_repo: FulfillmentRepository, transaction: Transaction) -> None:
    await fulfillment_repo.create_offer_purchase(
        OfferPurchase(
            transaction_id=transaction.id,
            offer_id=transaction.subject_refs["offer_id"],
            payer_ref=transaction.payer_ref,
        )
    )


# Rows created alongside a pending transaction and released if it never completes
HOLD_CREATORS: dict[TransactionKind, Callable[[FulfillmentRepository, Transaction], Awaitable[None]]] = {
    TransactionKind.RESERVATION: hold_reservation,
    TransactionKind.OFFER_PURCHASE: hold_offer_purchase,
}
