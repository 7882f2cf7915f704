"""Lookup shared by the boost lifecycle use cases"""

from typing import Optional
from activation_engine.libs.result import Error
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import Transaction


async def load_owned_boost(
    transaction_repo: TransactionRepository, transaction_id: str, payer_ref: str
) -> tuple[Optional[Transaction], Optional[Error]]:
    """The boost transaction, or the error refusing access to it"""
    transaction = await transaction_repo.get_by_id(transaction_id)
    if not transaction:
        return None, Error(
            code=ErrorCode.TRANSACTION_NOT_FOUND,
            message=f"Transaction {transaction_id} not found",
        )

    if not transaction.is_boost:
        return None, Error(
            code=ErrorCode.INVALID_TRANSACTION_STATE,
            message=f"Transaction {transaction_id} is not a boost",
            reason=f"kind={transaction.kind.value}",
        )

    if transaction.payer_ref != payer_ref:
        return None, Error(
            code=ErrorCode.FORBIDDEN,
            message=f"Boost {transaction_id} belongs to another business",
        )

    return transaction, None


def state_error(transaction: Transaction, action: str) -> Error:
    return Error(
        code=ErrorCode.INVALID_TRANSACTION_STATE,
        message=f"Boost {transaction.id} cannot be {action}",
        reason=f"status={transaction.status.value}",
    )
