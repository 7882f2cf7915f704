import pytest
from unittest.mock import AsyncMock, MagicMock

from tests.fakes import FakePaymentGateway, InMemoryStore, new_caller


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def store():
    """Shared in-memory tables"""
    return InMemoryStore()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def caller(store):
    """Repositories and unit of work of a single request"""
    return new_caller(store)
