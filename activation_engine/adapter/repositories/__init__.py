from .transaction_repository import SqlAlchemyTransactionRepository
from .budget_ledger_repository import SqlAlchemyBudgetLedgerRepository
from .budget_ledger_entry_repository import SqlAlchemyBudgetLedgerEntryRepository
from .catalog_repository import SqlAlchemyCatalogRepository
from .fulfillment_repository import SqlAlchemyFulfillmentRepository
from .subscription_repository import SqlAlchemySubscriptionRepository

__all__ = [
    "SqlAlchemyTransactionRepository",
    "SqlAlchemyBudgetLedgerRepository",
    "SqlAlchemyBudgetLedgerEntryRepository",
    "SqlAlchemyCatalogRepository",
    "SqlAlchemyFulfillmentRepository",
    "SqlAlchemySubscriptionRepository",
]
