from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.services.notifications import stock_notifier


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services keep business logic and orchestration, delegating data access to
    repositories. Operations run inside the caller's transaction; the caller
    ends it with commit() or rollback().
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def commit(self) -> None:
        """Commit the unit of work and release queued stock notifications."""
        await self.session.commit()
        await stock_notifier.publish_pending(self.session)

    async def rollback(self) -> None:
        """Roll back the unit of work and drop queued stock notifications."""
        await self.session.rollback()
        stock_notifier.discard_pending(self.session)
