from fastapi import status
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.libs.result import Error

ERROR_STATUS = {
    ErrorCode.SUBJECT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SUBJECT_INACTIVE: status.HTTP_409_CONFLICT,
    ErrorCode.SALE_WINDOW_CLOSED: status.HTTP_409_CONFLICT,
    ErrorCode.SOLD_OUT: status.HTTP_409_CONFLICT,
    ErrorCode.PURCHASE_LIMIT_REACHED: status.HTTP_409_CONFLICT,
    ErrorCode.INSUFFICIENT_BUDGET: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.NO_COMMISSION_FREE_OFFERS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.LEDGER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_SESSION_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.PAYMENT_SESSION_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.AMOUNT_MISMATCH: status.HTTP_409_CONFLICT,
    ErrorCode.REFERENCE_MISMATCH: status.HTTP_409_CONFLICT,
    ErrorCode.TRANSACTION_FLAGGED: status.HTTP_409_CONFLICT,
    ErrorCode.INVENTORY_EXHAUSTED: status.HTTP_409_CONFLICT,
    ErrorCode.TRANSACTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_TRANSACTION_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_SIGNATURE: status.HTTP_400_BAD_REQUEST,
}


def status_for(code: str) -> int:
    """HTTP status of a use case error code, 500 for *_FAILED, else 400"""
    if code in ERROR_STATUS:
        return ERROR_STATUS[code]
    if code.endswith("_FAILED"):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


class ClientError(Exception):
    """Use case error surfaced to the API client"""

    def __init__(self, error: Error, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code

    @classmethod
    def from_error(cls, error: Error) -> "ClientError":
        return cls(error, status_code=status_for(error.code))

    def to_response_body(self) -> dict:
        body = {"code": self.error.code, "message": self.error.message}
        if self.error.reason:
            body["reason"] = self.error.reason
        return {"error": body}
