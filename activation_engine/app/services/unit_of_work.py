"""Unit of Work Interface

Groups repository mutations into a single database transaction.
"""

from abc import ABC, abstractmethod


class UnitOfWork(ABC):
    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass
