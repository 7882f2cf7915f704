"""Background workers for the activation engine"""
from .reconciliation_sweeper import ReconciliationSweeperWorker
from .activation_scheduler import ActivationSchedulerWorker
from .budget_renewal import BudgetRenewalWorker

__all__ = ["ReconciliationSweeperWorker", "ActivationSchedulerWorker", "BudgetRenewalWorker"]
