"""Get Payout Summary Use Case"""

from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.use_cases.errors import ErrorCode
from .dtos import PayoutSummaryDTO


class GetPayoutSummary:
    """
    Cumulative amounts owed to a payee

    Sums fulfilled (including scheduled/active/completed) transactions; the
    net total is what has been or will be transferred to the payee.
    """

    def __init__(self, transaction_repo: TransactionRepository):
        self.transaction_repo = transaction_repo

    async def execute(self, payee_ref: str) -> Result[PayoutSummaryDTO]:
        try:
            count, gross, commission, net = await self.transaction_repo.get_payout_totals(payee_ref)
        except Exception as e:
            return Return.err(
                Error(
                    code=ErrorCode.PAYOUT_SUMMARY_FAILED,
                    message="Failed to compute payout summary",
                    reason=str(e),
                )
            )

        return Return.ok(
            PayoutSummaryDTO(
                payee_ref=payee_ref,
                fulfilled_count=count,
                amount_gross_cents=gross,
                commission_cents=commission,
                amount_net_cents=net,
            )
        )
