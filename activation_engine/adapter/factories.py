"""Use case assembly

Builds use cases over one AsyncSession, sharing the session between the
unit of work and every repository so their writes commit together. Used
by the API routes and the workers.
"""

from typing import Optional
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine.adapter.repositories import (
    SqlAlchemyBudgetLedgerEntryRepository,
    SqlAlchemyBudgetLedgerRepository,
    SqlAlchemyCatalogRepository,
    SqlAlchemyFulfillmentRepository,
    SqlAlchemySubscriptionRepository,
    SqlAlchemyTransactionRepository,
)
from activation_engine.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.app.use_cases.budget import ResetBudget
from activation_engine.app.use_cases.payments import (
    CheckoutSettingsDTO,
    CompleteTransaction,
    ExpireTransaction,
    HandleWebhookEvent,
    InitiateCheckout,
    RetryCheckoutSession,
    RunReconciliationSweep,
    ScheduleActivations,
)


def checkout_settings_from_config(config) -> CheckoutSettingsDTO:
    return CheckoutSettingsDTO(
        currency=config.DEFAULT_CURRENCY,
        default_commission_percent=int(config.DEFAULT_COMMISSION_PERCENT),
        commission_rates=config.COMMISSION_RATES or {},
        platform_payee_ref=config.PLATFORM_PAYEE_REF,
        transaction_ttl_hours=int(config.TRANSACTION_TTL_HOURS),
        success_url=config.CHECKOUT_SUCCESS_URL,
        cancel_url=config.CHECKOUT_CANCEL_URL,
    )


def build_complete_transaction(
    session: AsyncSession,
    payment_gateway: Optional[PaymentGateway] = None,
    notification_service: Optional[NotificationService] = None,
) -> CompleteTransaction:
    return CompleteTransaction(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        fulfillment_repo=SqlAlchemyFulfillmentRepository(session),
        ledger_repo=SqlAlchemyBudgetLedgerRepository(session),
        entry_repo=SqlAlchemyBudgetLedgerEntryRepository(session),
        payment_gateway=payment_gateway,
        notification_service=notification_service,
    )


def build_expire_transaction(
    session: AsyncSession, notification_service: Optional[NotificationService] = None
) -> ExpireTransaction:
    return ExpireTransaction(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
        fulfillment_repo=SqlAlchemyFulfillmentRepository(session),
        notification_service=notification_service,
    )


def build_reset_budget(session: AsyncSession) -> ResetBudget:
    return ResetBudget(
        uow=SqlAlchemyUnitOfWork(session),
        ledger_repo=SqlAlchemyBudgetLedgerRepository(session),
        entry_repo=SqlAlchemyBudgetLedgerEntryRepository(session),
    )


def build_initiate_checkout(
    session: AsyncSession,
    payment_gateway: PaymentGateway,
    settings: CheckoutSettingsDTO,
    notification_service: Optional[NotificationService] = None,
) -> InitiateCheckout:
    return InitiateCheckout(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        fulfillment_repo=SqlAlchemyFulfillmentRepository(session),
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        ledger_repo=SqlAlchemyBudgetLedgerRepository(session),
        entry_repo=SqlAlchemyBudgetLedgerEntryRepository(session),
        payment_gateway=payment_gateway,
        settings=settings,
        notification_service=notification_service,
    )


def build_retry_checkout_session(
    session: AsyncSession, payment_gateway: PaymentGateway, settings: CheckoutSettingsDTO
) -> RetryCheckoutSession:
    return RetryCheckoutSession(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
        catalog_repo=SqlAlchemyCatalogRepository(session),
        payment_gateway=payment_gateway,
        settings=settings,
    )


def build_handle_webhook_event(
    session: AsyncSession,
    payment_gateway: PaymentGateway,
    notification_service: Optional[NotificationService] = None,
) -> HandleWebhookEvent:
    return HandleWebhookEvent(
        uow=SqlAlchemyUnitOfWork(session),
        payment_gateway=payment_gateway,
        transaction_repo=SqlAlchemyTransactionRepository(session),
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        complete_transaction=build_complete_transaction(session, payment_gateway, notification_service),
        expire_transaction=build_expire_transaction(session, notification_service),
        reset_budget=build_reset_budget(session),
    )


def build_reconciliation_sweep(
    session: AsyncSession,
    payment_gateway: PaymentGateway,
    config,
    notification_service: Optional[NotificationService] = None,
) -> RunReconciliationSweep:
    return RunReconciliationSweep(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
        entry_repo=SqlAlchemyBudgetLedgerEntryRepository(session),
        payment_gateway=payment_gateway,
        complete_transaction=build_complete_transaction(session, payment_gateway, notification_service),
        expire_transaction=build_expire_transaction(session, notification_service),
        min_age_minutes=int(config.SWEEP_MIN_AGE_MINUTES),
        max_age_hours=int(config.SWEEP_MAX_AGE_HOURS),
        batch_size=int(config.SWEEP_BATCH_SIZE),
    )


def build_schedule_activations(session: AsyncSession, config) -> ScheduleActivations:
    return ScheduleActivations(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyTransactionRepository(session),
        ledger_repo=SqlAlchemyBudgetLedgerRepository(session),
        entry_repo=SqlAlchemyBudgetLedgerEntryRepository(session),
        batch_size=int(config.ACTIVATION_BATCH_SIZE),
    )
