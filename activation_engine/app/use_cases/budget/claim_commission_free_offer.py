"""ClaimCommissionFreeOffer Use Case

Spends one of a business's commission-free offers on a specific offer.
"""

from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.budget_ledger_entry import BudgetLedgerEntry, BudgetEntryType
from activation_engine.domain.catalog_item import CatalogItemType
from .dtos import ClaimCommissionFreeOfferCommandDTO, CommissionFreeClaimDTO


class ClaimCommissionFreeOffer:
    """
    Use Case: Mark an offer commission-free using the ledger's counter

    Business Rules:
    1. The offer must belong to the business
    2. Claiming an already commission-free offer costs nothing
    3. The counter is decremented atomically and never goes negative
    """

    def __init__(
        self,
        uow: UnitOfWork,
        ledger_repo: BudgetLedgerRepository,
        entry_repo: BudgetLedgerEntryRepository,
        catalog_repo: CatalogRepository,
    ):
        self.uow = uow
        self.ledger_repo = ledger_repo
        self.entry_repo = entry_repo
        self.catalog_repo = catalog_repo

    async def execute(self, command: ClaimCommissionFreeOfferCommandDTO) -> Result[CommissionFreeClaimDTO]:
        try:
            item = await self.catalog_repo.get_item(command.item_id)
            if not item or item.item_type != CatalogItemType.OFFER or item.business_id != command.business_id:
                return Return.err(
                    Error(
                        code=ErrorCode.SUBJECT_NOT_FOUND,
                        message=f"Offer {command.item_id} not found for business {command.business_id}",
                    )
                )

            ledger = await self.ledger_repo.get_by_business_id(command.business_id, for_update=True)
            if not ledger:
                return Return.err(
                    Error(
                        code=ErrorCode.LEDGER_NOT_FOUND,
                        message=f"No budget ledger found for business {command.business_id}",
                    )
                )

            if item.commission_free:
                return Return.ok(
                    CommissionFreeClaimDTO(
                        business_id=command.business_id,
                        item_id=item.id,
                        commission_free_offers_remaining=ledger.commission_free_offers_remaining,
                    )
                )

            if not await self.ledger_repo.consume_commission_free_offer(ledger.id):
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code=ErrorCode.NO_COMMISSION_FREE_OFFERS,
                        message="No commission-free offers remaining in the current period",
                    )
                )

            await self.catalog_repo.mark_commission_free(item.id)
            await self.entry_repo.create(
                BudgetLedgerEntry(
                    business_id=command.business_id,
                    ledger_id=ledger.id,
                    entry_type=BudgetEntryType.COMMISSION_FREE_CLAIM,
                    amount_cents=1,
                    balance_before=ledger.monthly_budget_remaining_cents,
                    balance_after=ledger.monthly_budget_remaining_cents,
                    idempotency_key=f"commission_free:{item.id}",
                )
            )
            await self.uow.commit()

            return Return.ok(
                CommissionFreeClaimDTO(
                    business_id=command.business_id,
                    item_id=item.id,
                    commission_free_offers_remaining=ledger.commission_free_offers_remaining - 1,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.CLAIM_OFFER_FAILED,
                    message="Failed to claim commission-free offer",
                    reason=str(e),
                )
            )
