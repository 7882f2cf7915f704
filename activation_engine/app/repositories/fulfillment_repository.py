"""Fulfillment Repository Interface

Persistence for the deliverables a transaction produces or holds:
tickets, reservations and offer purchases.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional
from activation_engine.domain.ticket import Ticket
from activation_engine.domain.reservation import Reservation, ReservationStatus
from activation_engine.domain.offer_purchase import OfferPurchase, OfferPurchaseStatus


class FulfillmentRepository(ABC):
    """
    Repository interface for transaction deliverables

    Status updates are conditional on the current status, like
    transaction transitions.
    """

    @abstractmethod
    async def create_tickets(self, tickets: list[Ticket]) -> list[Ticket]:
        """
        Persist issued tickets

        Args:
            tickets: Tickets of a single order

        Returns:
            Created tickets
        """
        pass

    @abstractmethod
    async def list_tickets(self, transaction_id: str) -> list[Ticket]:
        pass

    @abstractmethod
    async def create_reservation(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def get_reservation(self, transaction_id: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def transition_reservation(
        self,
        transaction_id: str,
        from_statuses: Iterable[ReservationStatus],
        to_status: ReservationStatus,
    ) -> bool:
        """
        Conditionally change the reservation held by a transaction

        Returns:
            True if the reservation was in one of from_statuses and was updated
        """
        pass

    @abstractmethod
    async def create_offer_purchase(self, purchase: OfferPurchase) -> OfferPurchase:
        pass

    @abstractmethod
    async def get_offer_purchase(self, transaction_id: str) -> Optional[OfferPurchase]:
        pass

    @abstractmethod
    async def mark_offer_purchase_paid(self, transaction_id: str, qr_code_token: str, paid_at: datetime) -> bool:
        """
        Flip a pending offer purchase to paid and attach its redemption token

        Returns:
            True if the purchase was pending and is now paid
        """
        pass

    @abstractmethod
    async def transition_offer_purchase(
        self,
        transaction_id: str,
        from_statuses: Iterable[OfferPurchaseStatus],
        to_status: OfferPurchaseStatus,
    ) -> bool:
        pass

    @abstractmethod
    async def count_counted_offer_purchases(self, offer_id: str, payer_ref: str) -> int:
        """
        Count paid or redeemed purchases of an offer by a user

        Args:
            offer_id: Catalog item (offer) identifier
            payer_ref: Purchasing user

        Returns:
            Number of purchases counted against max_per_user
        """
        pass
