"""Pricing rules for discounts and boosts"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from activation_engine.domain.commission import round_half_up
from activation_engine.domain.transaction import TransactionKind


class BoostTier(str, Enum):
    STANDARD = "standard"
    PREMIUM = "premium"


class BoostDurationMode(str, Enum):
    DAILY = "daily"
    HOURLY = "hourly"


# Cents per day / per hour
BOOST_RATES: dict[TransactionKind, dict[BoostTier, dict[BoostDurationMode, int]]] = {
    TransactionKind.EVENT_BOOST: {
        BoostTier.STANDARD: {BoostDurationMode.DAILY: 4000, BoostDurationMode.HOURLY: 550},
        BoostTier.PREMIUM: {BoostDurationMode.DAILY: 6000, BoostDurationMode.HOURLY: 850},
    },
    TransactionKind.OFFER_BOOST: {
        BoostTier.STANDARD: {BoostDurationMode.DAILY: 4000, BoostDurationMode.HOURLY: 550},
        BoostTier.PREMIUM: {BoostDurationMode.DAILY: 6000, BoostDurationMode.HOURLY: 850},
    },
    TransactionKind.PROFILE_BOOST: {
        BoostTier.STANDARD: {BoostDurationMode.DAILY: 3000, BoostDurationMode.HOURLY: 500},
        BoostTier.PREMIUM: {BoostDurationMode.DAILY: 8000, BoostDurationMode.HOURLY: 1200},
    },
}


@dataclass(frozen=True)
class BoostQuote:
    total_cents: int
    units: int
    unit_rate_cents: int
    active_from: datetime
    active_until: datetime


def discounted_price(original_cents: int, percent_off: int) -> int:
    """round_half_up(original * (100 - percent_off) / 100)"""
    if not 0 <= percent_off <= 100:
        raise ValueError(f"percent_off must be within 0..100, got {percent_off}")
    return round_half_up(Decimal(original_cents) * Decimal(100 - percent_off) / Decimal(100))


def quote_daily_boost(kind: TransactionKind, tier: BoostTier, start: date, end: date) -> BoostQuote:
    """Daily boosts are billed per calendar day, both ends inclusive, minimum one day"""
    if end < start:
        raise ValueError("end_date must not be before start_date")

    rate = BOOST_RATES[kind][tier][BoostDurationMode.DAILY]
    days = max(1, (end - start).days + 1)
    active_from = datetime.combine(start, datetime.min.time())
    return BoostQuote(
        total_cents=rate * days,
        units=days,
        unit_rate_cents=rate,
        active_from=active_from,
        active_until=active_from + timedelta(days=days),
    )


def quote_hourly_boost(kind: TransactionKind, tier: BoostTier, start_at: datetime, hours: int) -> BoostQuote:
    if hours < 1:
        raise ValueError("duration_hours must be at least 1")

    rate = BOOST_RATES[kind][tier][BoostDurationMode.HOURLY]
    return BoostQuote(
        total_cents=rate * hours,
        units=hours,
        unit_rate_cents=rate,
        active_from=start_at,
        active_until=start_at + timedelta(hours=hours),
    )
