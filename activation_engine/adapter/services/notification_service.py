"""Notification Service Implementations

Hand transaction state changes to the external notification dispatcher.
"""

import logging
from datetime import datetime
from typing import Optional
import httpx
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.domain.transaction import TransactionKind, TransactionStatus

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """
    Notification service that logs requests

    Useful for development and testing, or as a fallback.
    """

    async def notify_transaction(
        self, kind: TransactionKind, transaction_id: str, status: TransactionStatus
    ) -> bool:
        logger.info(
            f"[NOTIFY] Transaction: {transaction_id}, "
            f"Kind: {kind.value}, "
            f"Status: {status.value}"
        )
        return True


class WebhookNotificationService(NotificationService):
    """
    Notification service that posts to the dispatcher's HTTP endpoint

    Sends JSON payload to configured webhook URL.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        """
        Initialize webhook notification service

        Args:
            webhook_url: URL to POST notification requests to
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def notify_transaction(
        self, kind: TransactionKind, transaction_id: str, status: TransactionStatus
    ) -> bool:
        """
        Post a notification request

        Returns:
            True if the dispatcher accepted the request, False otherwise
        """
        payload = {
            "type": "transaction_status",
            "transaction_id": transaction_id,
            "kind": kind.value,
            "status": status.value,
            "occurred_at": datetime.utcnow().isoformat(),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                logger.info(
                    f"Notification sent for transaction {transaction_id} to {self.webhook_url}"
                )
                return True
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to send notification for transaction {transaction_id}: {e}"
            )
            return False


class CompositeNotificationService(NotificationService):
    """
    Notification service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + webhook).
    """

    def __init__(self, services: list[NotificationService]):
        self.services = services

    async def notify_transaction(
        self, kind: TransactionKind, transaction_id: str, status: TransactionStatus
    ) -> bool:
        """
        Returns:
            True if at least one service succeeded, False otherwise
        """
        success = False
        for service in self.services:
            try:
                if await service.notify_transaction(kind, transaction_id, status):
                    success = True
            except Exception as e:
                logger.error(f"Notification service {type(service).__name__} failed: {e}")
        return success


def create_notification_service(webhook_url: Optional[str] = None) -> NotificationService:
    """
    Factory function to create appropriate notification service

    Args:
        webhook_url: Optional webhook URL. If provided, creates composite
                     service with logging + webhook. Otherwise, just logging.

    Returns:
        Configured NotificationService
    """
    services: list[NotificationService] = [LoggingNotificationService()]

    if webhook_url:
        services.append(WebhookNotificationService(webhook_url))

    if len(services) == 1:
        return services[0]

    return CompositeNotificationService(services)
