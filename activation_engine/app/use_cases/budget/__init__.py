"""Budget ledger use cases"""
from .reserve_budget import ReserveBudget
from .reset_budget import ResetBudget, reset_idempotency_key
from .get_budget import GetBudget
from .claim_commission_free_offer import ClaimCommissionFreeOffer
from .audit_budget_ledger import AuditBudgetLedger
from .ledger_operations import (
    ReservationOutcome,
    budget_deduction_key,
    reserve_budget,
    settle_budget_share,
)
from .dtos import (
    ReserveBudgetCommandDTO,
    BudgetReservationDTO,
    ResetBudgetCommandDTO,
    BudgetLedgerDTO,
    ClaimCommissionFreeOfferCommandDTO,
    CommissionFreeClaimDTO,
    BudgetDiscrepancyDTO,
    BudgetAuditResultDTO,
    BudgetRenewalResultDTO,
)

__all__ = [
    "ReserveBudget",
    "ResetBudget",
    "reset_idempotency_key",
    "GetBudget",
    "ClaimCommissionFreeOffer",
    "AuditBudgetLedger",
    "ReservationOutcome",
    "budget_deduction_key",
    "reserve_budget",
    "settle_budget_share",
    "ReserveBudgetCommandDTO",
    "BudgetReservationDTO",
    "ResetBudgetCommandDTO",
    "BudgetLedgerDTO",
    "ClaimCommissionFreeOfferCommandDTO",
    "CommissionFreeClaimDTO",
    "BudgetDiscrepancyDTO",
    "BudgetAuditResultDTO",
    "BudgetRenewalResultDTO",
]
