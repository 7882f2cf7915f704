from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from activation_engine.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from activation_engine.app.services.notification_service import NotificationService
from activation_engine.app.services.payment_gateway import PaymentGateway

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def get_unit_of_work():
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUnitOfWork(session)


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_app_config(request: Request):
    return request.app.state.config
