from .requests import (
    CheckoutRequestSchema,
    PayerRequestSchema,
    ReserveBudgetRequestSchema,
    ResetBudgetRequestSchema,
    ClaimOfferRequestSchema,
)

__all__ = [
    "CheckoutRequestSchema",
    "PayerRequestSchema",
    "ReserveBudgetRequestSchema",
    "ResetBudgetRequestSchema",
    "ClaimOfferRequestSchema",
]
