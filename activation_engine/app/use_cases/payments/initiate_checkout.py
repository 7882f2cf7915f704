"""InitiateCheckout Use Case

Validates, prices and persists a purchase, then either completes it
synchronously (budget or free funding) or opens a processor checkout session.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from activation_engine.libs.result import Result, Return, Error
from activation_engine.app.services.unit_of_work import UnitOfWork
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.repositories.transaction_repository import TransactionRepository
from activation_engine.app.repositories.catalog_repository import CatalogRepository
from activation_engine.app.repositories.fulfillment_repository import FulfillmentRepository
from activation_engine.app.repositories.subscription_repository import SubscriptionRepository
from activation_engine.app.repositories.budget_ledger_repository import BudgetLedgerRepository
from activation_engine.app.repositories.budget_ledger_entry_repository import BudgetLedgerEntryRepository
from activation_engine.app.use_cases.errors import ErrorCode
from activation_engine.app.use_cases.budget.ledger_operations import budget_deduction_key, reserve_budget
from activation_engine.domain.commission import calculate_commission, commission_percent
from activation_engine.domain.subscription import PlanTier
from activation_engine.domain.transaction import FundingMode, Transaction, TransactionStatus
from .checkout_planners import (
    CHECKOUT_PLANNERS,
    HOLD_CREATORS,
    CheckoutPlan,
    CheckoutValidationError,
    PlanningContext,
    resolve_funding,
)
from .complete_transaction import CompleteTransaction
from .dtos import (
    CheckoutResponseDTO,
    CheckoutSettingsDTO,
    InitiateCheckoutCommandDTO,
    PaymentFactSource,
    VerifiedPaymentFactDTO,
)
from .session_opener import CheckoutSessionOpener, checkout_refs

logger = logging.getLogger(__name__)


class InitiateCheckout:
    """
    Use Case: Start a purchase

    Business Rules:
    1. Validation failures never create a transaction row
    2. Amounts (gross, commission, net) are fixed at creation
    3. Budget and mixed funding are only available for boosts
    4. Budget-funded and free purchases complete synchronously
    5. Session failure or timeout leaves the row pending

    Flow:
    1. Plan (validate + price) with the kind's planner
    2. Resolve funding, check budget coverage
    3. Compute commission from the payee's plan tier
    4. Persist pending transaction and held rows, commit
    5. Budget: reserve gross, then complete
    6. Free: complete
    7. External/mixed: open checkout session
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: TransactionRepository,
        catalog_repo: CatalogRepository,
        fulfillment_repo: FulfillmentRepository,
        subscription_repo: SubscriptionRepository,
        ledger_repo: BudgetLedgerRepository,
        entry_repo: BudgetLedgerEntryRepository,
        payment_gateway: PaymentGateway,
        settings: CheckoutSettingsDTO,
        notification_service: Optional[NotificationService] = None,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.catalog_repo = catalog_repo
        self.fulfillment_repo = fulfillment_repo
        self.subscription_repo = subscription_repo
        self.ledger_repo = ledger_repo
        self.entry_repo = entry_repo
        self.settings = settings
        self.complete_transaction = CompleteTransaction(
            uow=uow,
            transaction_repo=transaction_repo,
            catalog_repo=catalog_repo,
            fulfillment_repo=fulfillment_repo,
            ledger_repo=ledger_repo,
            entry_repo=entry_repo,
            payment_gateway=payment_gateway,
            notification_service=notification_service,
        )
        self.session_opener = CheckoutSessionOpener(
            uow=uow,
            transaction_repo=transaction_repo,
            catalog_repo=catalog_repo,
            payment_gateway=payment_gateway,
            success_url=settings.success_url,
            cancel_url=settings.cancel_url,
        )

    async def execute(self, command: InitiateCheckoutCommandDTO) -> Result[CheckoutResponseDTO]:
        """
        Execute checkout

        Args:
            command: InitiateCheckoutCommandDTO with kind, subject_refs, payer_ref, funding

        Returns:
            Result[CheckoutResponseDTO]: redirect for external payment or the
            synchronous completion status; validation, funding or session errors
        """
        try:
            now = datetime.utcnow()

            # Step 1: Plan
            context = PlanningContext(
                catalog_repo=self.catalog_repo,
                fulfillment_repo=self.fulfillment_repo,
                platform_payee_ref=self.settings.platform_payee_ref,
                now=now,
            )
            plan = await CHECKOUT_PLANNERS[command.kind](context, command)

            # Step 2: Funding
            funding_mode = resolve_funding(command.kind, plan.amount_gross_cents, command.funding)
            partial_budget_cents = command.funding.partial_budget_cents if funding_mode == FundingMode.MIXED else 0
            budget_error = await self._check_budget(plan, funding_mode, partial_budget_cents)
            if budget_error:
                return Return.err(budget_error)

            # Step 3: Commission
            percent = await self._commission_percent(command, plan)
            breakdown = calculate_commission(plan.amount_gross_cents, percent)

            # Step 4: Persist pending transaction
            transaction = Transaction(
                kind=command.kind,
                subject_refs={
                    **plan.subject_refs,
                    "product_name": plan.product_name,
                    **checkout_refs(command.customer_email, command.success_url, command.cancel_url),
                },
                payer_ref=command.payer_ref,
                payee_ref=plan.payee_ref,
                currency=self.settings.currency,
                amount_original_cents=plan.amount_original_cents,
                amount_gross_cents=breakdown.gross_cents,
                commission_percent=breakdown.percent,
                commission_cents=breakdown.commission_cents,
                amount_net_cents=breakdown.net_cents,
                funding_mode=funding_mode,
                partial_budget_cents=partial_budget_cents,
                status=TransactionStatus.PENDING,
                active_from=plan.active_from,
                active_until=plan.active_until,
                expires_at=now + timedelta(hours=self.settings.transaction_ttl_hours),
            )
            transaction = await self.transaction_repo.create(transaction)

            hold = HOLD_CREATORS.get(command.kind)
            if hold:
                await hold(self.fulfillment_repo, transaction)

            await self.uow.commit()
            logger.info(
                f"Transaction {transaction.id} created: kind={command.kind.value}, "
                f"gross={breakdown.gross_cents}, funding={funding_mode.value}"
            )

        except CheckoutValidationError as e:
            await self.uow.rollback()
            return Return.err(Error(code=e.code, message=e.message))

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Checkout failed for payer {command.payer_ref}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.INITIATE_CHECKOUT_FAILED,
                    message="Failed to initiate checkout",
                    reason=str(e),
                )
            )

        # Step 5-7: Settle according to funding
        if funding_mode == FundingMode.INTERNAL_BUDGET:
            return await self._complete_from_budget(transaction)
        if funding_mode == FundingMode.FREE:
            return await self._complete_synchronously(transaction, PaymentFactSource.FREE)
        return await self._open_session(transaction)

    async def _check_budget(
        self, plan: CheckoutPlan, funding_mode: FundingMode, partial_budget_cents: int
    ) -> Optional[Error]:
        if funding_mode not in (FundingMode.INTERNAL_BUDGET, FundingMode.MIXED):
            return None

        ledger = await self.ledger_repo.get_by_business_id(plan.business_id)
        if not ledger:
            return Error(
                code=ErrorCode.LEDGER_NOT_FOUND,
                message=f"No budget ledger found for business {plan.business_id}",
            )

        required = plan.amount_gross_cents if funding_mode == FundingMode.INTERNAL_BUDGET else partial_budget_cents
        if ledger.monthly_budget_remaining_cents < required:
            return Error(
                code=ErrorCode.INSUFFICIENT_BUDGET,
                message=(
                    f"Insufficient budget. Required: {required}, "
                    f"Available: {ledger.monthly_budget_remaining_cents}"
                ),
            )
        return None

    async def _commission_percent(self, command: InitiateCheckoutCommandDTO, plan: CheckoutPlan):
        if plan.commission_free:
            return 0

        plan_tier = PlanTier.FREE
        subscription = await self.subscription_repo.get_active_by_business_id(plan.business_id)
        if subscription:
            plan_tier = subscription.plan_tier

        return commission_percent(
            plan_tier,
            command.kind,
            rates=self.settings.commission_rates,
            default_percent=self.settings.default_commission_percent,
        )

    async def _complete_from_budget(self, transaction: Transaction) -> Result[CheckoutResponseDTO]:
        transaction_id = transaction.id
        business_id = transaction.subject_refs.get("business_id")
        try:
            outcome = await reserve_budget(
                self.ledger_repo,
                self.entry_repo,
                business_id=business_id,
                amount_cents=transaction.amount_gross_cents,
                idempotency_key=budget_deduction_key(transaction_id),
                transaction_id=transaction_id,
            )
            if not outcome.reserved:
                await self.uow.rollback()
                logger.info(f"Budget transaction {transaction_id} left pending: {outcome.failure_code}")
                return Return.err(
                    Error(
                        code=ErrorCode.INSUFFICIENT_BUDGET,
                        message=f"Insufficient budget for business {business_id}",
                        reason=f"remaining={outcome.balance_before}",
                    )
                )

            await self.transaction_repo.update_fields(
                transaction_id, {"budget_settled_at": datetime.utcnow()}
            )
            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code=ErrorCode.RESERVE_BUDGET_FAILED,
                    message="Failed to reserve budget",
                    reason=str(e),
                )
            )

        return await self._complete_synchronously(transaction, PaymentFactSource.BUDGET)

    async def _complete_synchronously(
        self, transaction: Transaction, source: PaymentFactSource
    ) -> Result[CheckoutResponseDTO]:
        # Snapshot before completion, a rollback inside it expires the instance
        response = self._to_response(transaction, transaction.status)
        completion = await self.complete_transaction.execute(
            response.transaction_id,
            VerifiedPaymentFactDTO(amount_cents=0, source=source),
        )
        if completion.is_err():
            return Return.err(completion.error)
        return Return.ok(response.model_copy(update={"status": completion.value.status}))

    async def _open_session(self, transaction: Transaction) -> Result[CheckoutResponseDTO]:
        opened = await self.session_opener.open(transaction)
        if opened.is_err():
            return Return.err(opened.error)

        session = opened.value
        return Return.ok(
            self._to_response(
                transaction,
                TransactionStatus.AWAITING_EXTERNAL_PAYMENT,
                redirect_url=session.url,
                external_reference=session.session_id,
            )
        )

    def _to_response(
        self,
        transaction: Transaction,
        status: TransactionStatus,
        redirect_url: Optional[str] = None,
        external_reference: Optional[str] = None,
    ) -> CheckoutResponseDTO:
        return CheckoutResponseDTO(
            transaction_id=transaction.id,
            kind=transaction.kind,
            status=status,
            funding_mode=transaction.funding_mode,
            amount_gross_cents=transaction.amount_gross_cents,
            commission_cents=transaction.commission_cents,
            amount_net_cents=transaction.amount_net_cents,
            partial_budget_cents=transaction.partial_budget_cents,
            currency=transaction.currency,
            redirect_url=redirect_url,
            external_reference=external_reference,
        )
