import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from activation_engine import domain  # noqa: F401  registers tables on SQLModel.metadata
from activation_engine.adapter.services.notification_service import create_notification_service
from activation_engine.adapter.services.stripe_payment_gateway import build_payment_gateway
from activation_engine.api.error import ClientError
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway
from activation_engine.api.routes import boosts, budgets, checkout, operations, payouts, transactions, webhooks

logger = logging.getLogger(__name__)


def create_app(
    config,
    payment_gateway: Optional[PaymentGateway] = None,
    notification_service: Optional[NotificationService] = None,
) -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if config.ENABLE_SENTRY:
        sentry_sdk.init(
            dsn=config.DSN_SENTRY,
            environment=config.SENTRY_ENVIRONMENT,
            traces_sample_rate=0.1,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.AUTO_CREATE_TABLES:
            from activation_engine.depends import engine

            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        yield

    app = FastAPI(
        title="Transactional Activation Engine",
        description="Checkout, payment confirmation and activation of tickets, reservations, offers and boosts",
        version="0.1.0",
        lifespan=lifespan,
    )

    # The payment client is built once per process
    app.state.config = config
    app.state.payment_gateway = payment_gateway or build_payment_gateway(config)
    app.state.notification_service = notification_service or create_notification_service(
        config.NOTIFICATION_WEBHOOK_URL
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.ENABLE_LOGGING_MIDDLEWARE:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)")
            return response

    @app.exception_handler(ClientError)
    async def client_error_handler(request: Request, exc: ClientError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Invalid request parameters",
                    "reason": str(exc.errors()),
                }
            },
        )

    for module in (checkout, transactions, boosts, webhooks, operations, budgets, payouts):
        app.include_router(module.router, prefix=config.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
