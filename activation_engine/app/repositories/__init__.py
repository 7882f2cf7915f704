from .transaction_repository import TransactionRepository
from .budget_ledger_repository import BudgetLedgerRepository
from .budget_ledger_entry_repository import BudgetLedgerEntryRepository
from .catalog_repository import CatalogRepository
from .fulfillment_repository import FulfillmentRepository
from .subscription_repository import SubscriptionRepository

__all__ = [
    "TransactionRepository",
    "BudgetLedgerRepository",
    "BudgetLedgerEntryRepository",
    "CatalogRepository",
    "FulfillmentRepository",
    "SubscriptionRepository",
]
