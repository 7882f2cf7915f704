"""Notification Service Interface

Defines the invocation contract of the external notification dispatcher.
Delivery (push, email, in-app) is handled outside this service.
"""

from abc import ABC, abstractmethod
from activation_engine.domain.transaction import TransactionKind, TransactionStatus


class NotificationService(ABC):
    """
    Abstract notification dispatcher

    Calls are fire-and-forget: implementations report failure by
    returning False, callers log and carry on.
    """

    @abstractmethod
    async def notify_transaction(
        self, kind: TransactionKind, transaction_id: str, status: TransactionStatus
    ) -> bool:
        """
        Request notifications for a transaction that reached a new state

        Args:
            kind: Transaction kind
            transaction_id: Transaction identifier
            status: Status the transaction moved to

        Returns:
            True if the request was accepted, False otherwise
        """
        pass
