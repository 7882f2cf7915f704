from .base import BaseModel, generate_uuid
from .transaction import (
    Transaction,
    TransactionKind,
    TransactionStatus,
    FundingMode,
    BOOST_KINDS,
    OPEN_STATUSES,
    FULFILLED_STATUSES,
    TERMINAL_STATUSES,
    can_transition,
    make_fingerprint,
)
from .budget_ledger import BudgetLedger
from .budget_ledger_entry import BudgetLedgerEntry, BudgetEntryType
from .catalog_item import CatalogItem, CatalogItemType
from .ticket import Ticket, TicketStatus
from .reservation import Reservation, ReservationStatus
from .offer_purchase import OfferPurchase, OfferPurchaseStatus
from .business import Business
from .subscription import Subscription, SubscriptionStatus, PlanTier

__all__ = [
    "BaseModel",
    "generate_uuid",
    "Transaction",
    "TransactionKind",
    "TransactionStatus",
    "FundingMode",
    "BOOST_KINDS",
    "OPEN_STATUSES",
    "FULFILLED_STATUSES",
    "TERMINAL_STATUSES",
    "can_transition",
    "make_fingerprint",
    "BudgetLedger",
    "BudgetLedgerEntry",
    "BudgetEntryType",
    "CatalogItem",
    "CatalogItemType",
    "Ticket",
    "TicketStatus",
    "Reservation",
    "ReservationStatus",
    "OfferPurchase",
    "OfferPurchaseStatus",
    "Business",
    "Subscription",
    "SubscriptionStatus",
    "PlanTier",
]
