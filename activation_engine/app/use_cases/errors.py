"""Error codes returned in Result errors

Grouped by the layer of the error taxonomy they belong to.
"""


class ErrorCode:
    # Validation: rejected at checkout, no transaction row is created
    SUBJECT_NOT_FOUND = "SUBJECT_NOT_FOUND"
    SUBJECT_INACTIVE = "SUBJECT_INACTIVE"
    SALE_WINDOW_CLOSED = "SALE_WINDOW_CLOSED"
    SOLD_OUT = "SOLD_OUT"
    QUANTITY_INVALID = "QUANTITY_INVALID"
    PARTY_SIZE_INVALID = "PARTY_SIZE_INVALID"
    PURCHASE_LIMIT_REACHED = "PURCHASE_LIMIT_REACHED"
    INVALID_FUNDING = "INVALID_FUNDING"
    INVALID_BOOST_REQUEST = "INVALID_BOOST_REQUEST"
    INVALID_SUBJECT_REFS = "INVALID_SUBJECT_REFS"

    # Funding
    INSUFFICIENT_BUDGET = "INSUFFICIENT_BUDGET"
    LEDGER_NOT_FOUND = "LEDGER_NOT_FOUND"
    NO_COMMISSION_FREE_OFFERS = "NO_COMMISSION_FREE_OFFERS"
    PAYMENT_SESSION_FAILED = "PAYMENT_SESSION_FAILED"
    PAYMENT_SESSION_TIMEOUT = "PAYMENT_SESSION_TIMEOUT"

    # Integrity: transaction is fenced for manual review
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    REFERENCE_MISMATCH = "REFERENCE_MISMATCH"
    TRANSACTION_FLAGGED = "TRANSACTION_FLAGGED"

    # Inventory
    INVENTORY_EXHAUSTED = "INVENTORY_EXHAUSTED"

    # State
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    INVALID_TRANSACTION_STATE = "INVALID_TRANSACTION_STATE"
    FORBIDDEN = "FORBIDDEN"

    # Webhook
    INVALID_SIGNATURE = "INVALID_SIGNATURE"

    # Transient
    INITIATE_CHECKOUT_FAILED = "INITIATE_CHECKOUT_FAILED"
    COMPLETE_TRANSACTION_FAILED = "COMPLETE_TRANSACTION_FAILED"
    EXPIRE_TRANSACTION_FAILED = "EXPIRE_TRANSACTION_FAILED"
    CANCEL_TRANSACTION_FAILED = "CANCEL_TRANSACTION_FAILED"
    WEBHOOK_PROCESSING_FAILED = "WEBHOOK_PROCESSING_FAILED"
    RECONCILIATION_FAILED = "RECONCILIATION_FAILED"
    ACTIVATION_FAILED = "ACTIVATION_FAILED"
    RESERVE_BUDGET_FAILED = "RESERVE_BUDGET_FAILED"
    RESET_BUDGET_FAILED = "RESET_BUDGET_FAILED"
    CLAIM_OFFER_FAILED = "CLAIM_OFFER_FAILED"
    AUDIT_FAILED = "AUDIT_FAILED"
    PAYOUT_SUMMARY_FAILED = "PAYOUT_SUMMARY_FAILED"
    BOOST_STATE_CHANGE_FAILED = "BOOST_STATE_CHANGE_FAILED"


INTEGRITY_ERRORS = frozenset(
    {ErrorCode.AMOUNT_MISMATCH, ErrorCode.REFERENCE_MISMATCH, ErrorCode.TRANSACTION_FLAGGED}
)
