"""SQLAlchemy implementation of FulfillmentRepository"""

from datetime import datetime
from typing import Iterable, Optional
from sqlalchemy import func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.domain.offer_purchase import (
    COUNTED_PURCHASE_STATUSES,
    OfferPurchase,
    OfferPurchaseStatus,
)
from activation_engine.domain.reservation import Reservation, ReservationStatus
from activation_engine.domain.ticket import Ticket


class SqlAlchemyFulfillmentRepository(FulfillmentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_tickets(self, tickets: list[Ticket]) -> list[Ticket]:
        self.session.add_all(tickets)
        await self.session.flush()
        return tickets

    async def list_tickets(self, transaction_id: str) -> list[Ticket]:
        stmt = (
            select(Ticket)
            .where(Ticket.transaction_id == transaction_id)
            .order_by(Ticket.sequence)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_reservation(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        await self.session.refresh(reservation)
        return reservation

    async def get_reservation(self, transaction_id: str) -> Optional[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.transaction_id == transaction_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def transition_reservation(
        self,
        transaction_id: str,
        from_statuses: Iterable[ReservationStatus],
        to_status: ReservationStatus,
    ) -> bool:
        stmt = (
            update(Reservation)
            .where(Reservation.transaction_id == transaction_id)
            .where(Reservation.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def create_offer_purchase(self, purchase: OfferPurchase) -> OfferPurchase:
        self.session.add(purchase)
        await self.session.flush()
        await self.session.refresh(purchase)
        return purchase

    async def get_offer_purchase(self, transaction_id: str) -> Optional[OfferPurchase]:
        stmt = (
            select(OfferPurchase)
            .where(OfferPurchase.transaction_id == transaction_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_offer_purchase_paid(self, transaction_id: str, qr_code_token: str, paid_at: datetime) -> bool:
        stmt = (
            update(OfferPurchase)
            .where(OfferPurchase.transaction_id == transaction_id)
            .where(OfferPurchase.status == OfferPurchaseStatus.PENDING)
            .values(
                status=OfferPurchaseStatus.PAID,
                qr_code_token=qr_code_token,
                paid_at=paid_at,
                updated_at=paid_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def transition_offer_purchase(
        self,
        transaction_id: str,
        from_statuses: Iterable[OfferPurchaseStatus],
        to_status: OfferPurchaseStatus,
    ) -> bool:
        stmt = (
            update(OfferPurchase)
            .where(OfferPurchase.transaction_id == transaction_id)
            .where(OfferPurchase.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def count_counted_offer_purchases(self, offer_id: str, payer_ref: str) -> int:
        stmt = (
            select(func.count(OfferPurchase.id))
            .where(OfferPurchase.offer_id == offer_id)
            .where(OfferPurchase.payer_ref == payer_ref)
            .where(OfferPurchase.status.in_(list(COUNTED_PURCHASE_STATUSES)))
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
