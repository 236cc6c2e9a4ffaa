from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carpet_inventory.db.session import get_session_maker

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Return the session factory used for requests and background tasks.

    Tests override this dependency to point the app at their own database.
    """
    return get_session_maker()


# PUBLIC_INTERFACE
async def get_db_session(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession for one request.

    Handlers commit through their service; anything left uncommitted when the
    handler raises is rolled back here.
    """
    async with factory() as session:
        try:
            yield session
        except Exception:
            logger.debug("Rolling back request session after error")
            await session.rollback()
            raise
