"""Commission Calculator

Pure functions mapping (plan tier, transaction kind, gross amount) to the
platform's commission and the payee's net. No I/O, no configuration lookups:
rates are passed in so results are reproducible for audit.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional, Union
from activation_engine.domain.subscription import PlanTier
from activation_engine.domain.transaction import TransactionKind, BOOST_KINDS

DEFAULT_COMMISSION_PERCENT = Decimal("12")

# Boosts are platform revenue: everything is retained, nothing is transferred
BOOST_COMMISSION_PERCENT = Decimal("100")

TICKET_RATE_GROUP = "ticket"
OFFER_RATE_GROUP = "offer"

# Ticket sales and offer sales carry independently configured rates
RATE_GROUP_BY_KIND: dict[TransactionKind, str] = {
    TransactionKind.TICKET_ORDER: TICKET_RATE_GROUP,
    TransactionKind.RESERVATION: TICKET_RATE_GROUP,
    TransactionKind.OFFER_PURCHASE: OFFER_RATE_GROUP,
}

Percent = Union[int, float, str, Decimal]
RateTable = Mapping[str, Mapping[str, Percent]]


@dataclass(frozen=True)
class CommissionBreakdown:
    gross_cents: int
    percent: Decimal
    commission_cents: int
    net_cents: int


def round_half_up(value: Decimal) -> int:
    """Round to a whole cent, halves away from zero"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def commission_percent(
    plan_tier: Union[PlanTier, str],
    kind: TransactionKind,
    rates: Optional[RateTable] = None,
    default_percent: Percent = DEFAULT_COMMISSION_PERCENT,
) -> Decimal:
    """
    Commission percent in effect for a plan tier and transaction kind

    Args:
        plan_tier: Payee's subscription tier
        kind: Transaction kind
        rates: {"ticket": {"pro": 8, ...}, "offer": {...}}; missing entries use the default
        default_percent: Fallback when no rate is configured

    Returns:
        Percent between 0 and 100
    """
    if kind in BOOST_KINDS:
        return BOOST_COMMISSION_PERCENT

    tier = plan_tier.value if isinstance(plan_tier, PlanTier) else str(plan_tier)
    group = (rates or {}).get(RATE_GROUP_BY_KIND[kind], {})
    percent = Decimal(str(group.get(tier, default_percent)))

    if percent < 0 or percent > 100:
        raise ValueError(f"Commission percent out of range: {percent}")
    return percent


def calculate_commission(gross_cents: int, percent: Percent) -> CommissionBreakdown:
    """
    Split a gross amount into commission and net

    commission = round_half_up(gross * percent / 100), net = gross - commission
    """
    if gross_cents < 0:
        raise ValueError(f"Gross amount must be non-negative, got {gross_cents}")

    percent = Decimal(str(percent))
    commission = round_half_up(Decimal(gross_cents) * percent / Decimal(100))
    return CommissionBreakdown(
        gross_cents=gross_cents,
        percent=percent,
        commission_cents=commission,
        net_cents=gross_cents - commission,
    )
