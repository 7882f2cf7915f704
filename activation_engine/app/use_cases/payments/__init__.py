"""Payment and transaction lifecycle use cases"""
from .initiate_checkout import InitiateCheckout
from .retry_checkout_session import RetryCheckoutSession
from .complete_transaction import CompleteTransaction
from .expire_transaction import ExpireTransaction
from .cancel_transaction import CancelTransaction
from .get_transaction_status import GetTransactionStatus
from .get_payout_summary import GetPayoutSummary
from .handle_webhook_event import HandleWebhookEvent
from .run_reconciliation_sweep import RunReconciliationSweep
from .schedule_activations import ScheduleActivations
from .effects import InventoryExhaustedError, EFFECT_APPLIERS, RELEASE_HANDLERS
from .checkout_planners import CHECKOUT_PLANNERS, CheckoutValidationError, resolve_funding
from .dtos import (
    FundingPreferenceDTO,
    InitiateCheckoutCommandDTO,
    CheckoutSettingsDTO,
    CheckoutResponseDTO,
    PaymentFactSource,
    VerifiedPaymentFactDTO,
    CompletionOutcome,
    CompletionResultDTO,
    CloseOutcome,
    CloseResultDTO,
    TransactionStatusDTO,
    WebhookAckDTO,
    ReconciliationSweepResultDTO,
    ActivationResultDTO,
    PayoutSummaryDTO,
    CancelCommandDTO,
)

__all__ = [
    "InitiateCheckout",
    "RetryCheckoutSession",
    "CompleteTransaction",
    "ExpireTransaction",
    "CancelTransaction",
    "GetTransactionStatus",
    "GetPayoutSummary",
    "HandleWebhookEvent",
    "RunReconciliationSweep",
    "ScheduleActivations",
    "InventoryExhaustedError",
    "EFFECT_APPLIERS",
    "RELEASE_HANDLERS",
    "CHECKOUT_PLANNERS",
    "CheckoutValidationError",
    "resolve_funding",
    "FundingPreferenceDTO",
    "InitiateCheckoutCommandDTO",
    "CheckoutSettingsDTO",
    "CheckoutResponseDTO",
    "PaymentFactSource",
    "VerifiedPaymentFactDTO",
    "CompletionOutcome",
    "CompletionResultDTO",
    "CloseOutcome",
    "CloseResultDTO",
    "TransactionStatusDTO",
    "WebhookAckDTO",
    "ReconciliationSweepResultDTO",
    "ActivationResultDTO",
    "PayoutSummaryDTO",
    "CancelCommandDTO",
]
