"""Get Transaction Status Use Case

Read model polled by clients after returning from the hosted checkout.
"""

from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.domain.transaction import FULFILLED_STATUSES, TransactionKind
from .dtos import TransactionStatusDTO


class GetTransactionStatus:
    """Current state of a transaction, with ticket and redemption tokens once fulfilled"""

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        fulfillment_repo: FulfillmentRepository,
    ):
        self.transaction_repo = transaction_repo
        self.fulfillment_repo = fulfillment_repo

    async def execute(self, transaction_id: str) -> Result[TransactionStatusDTO]:
        transaction = await self.transaction_repo.get_by_id(transaction_id)
        if not transaction:
            return Return.err(
                Error(
                    code=ErrorCode.TRANSACTION_NOT_FOUND,
                    message=f"Transaction {transaction_id} not found",
                )
            )

        ticket_tokens = []
        redemption_token = None
        if transaction.status in FULFILLED_STATUSES:
            if transaction.kind == TransactionKind.TICKET_ORDER:
                tickets = await self.fulfillment_repo.list_tickets(transaction_id)
                ticket_tokens = [ticket.qr_code_token for ticket in tickets]
            elif transaction.kind == TransactionKind.OFFER_PURCHASE:
                purchase = await self.fulfillment_repo.get_offer_purchase(transaction_id)
                redemption_token = purchase.qr_code_token if purchase else None

        return Return.ok(
            TransactionStatusDTO(
                transaction_id=transaction.id,
                kind=transaction.kind,
                status=transaction.status,
                funding_mode=transaction.funding_mode,
                payer_ref=transaction.payer_ref,
                payee_ref=transaction.payee_ref,
                currency=transaction.currency,
                amount_original_cents=transaction.amount_original_cents,
                amount_gross_cents=transaction.amount_gross_cents,
                commission_cents=transaction.commission_cents,
                amount_net_cents=transaction.amount_net_cents,
                partial_budget_cents=transaction.partial_budget_cents,
                flagged_for_review=transaction.flagged_for_review,
                flag_reason=transaction.flag_reason,
                external_reference=transaction.external_reference,
                active_from=transaction.active_from,
                active_until=transaction.active_until,
                ticket_tokens=ticket_tokens,
                redemption_token=redemption_token,
                created_at=transaction.created_at,
                expires_at=transaction.expires_at,
                terminal_at=transaction.terminal_at,
            )
        )
