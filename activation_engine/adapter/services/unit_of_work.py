from sqlmodel.ext.asyncio.session import AsyncSession
from activation_engine.app.services.unit_of_work import UnitOfWork


class SqlAlchemyUnitOfWork(UnitOfWork):
    """Commits or rolls back the request's AsyncSession"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()
