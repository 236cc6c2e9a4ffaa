from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.db.base import utcnow
from carpet_inventory.db.models.sequences import IdSequence
from .base import BaseRepository


_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class IdSequenceRepository(BaseRepository):
    """Repository for id_sequences counters."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise NotImplementedError(f"No atomic upsert available for dialect {dialect!r}")

    async def increment(self, prefix: str, date_str: str) -> int:
        """
        Create the (prefix, date_str) counter at 1 or bump it by one, returning
        the new value. Single INSERT .. ON CONFLICT DO UPDATE .. RETURNING.
        """
        insert = self._insert()
        stmt = insert(IdSequence).values(
            prefix=prefix,
            date_str=date_str,
            last_sequence=1,
            created_at=utcnow(),
            updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[IdSequence.prefix, IdSequence.date_str],
            set_={
                "last_sequence": IdSequence.last_sequence + 1,
                "updated_at": utcnow(),
            },
        ).returning(IdSequence.last_sequence)
        result = await self.execute(stmt)
        return int(result.scalar_one())

    async def get(self, prefix: str, date_str: str) -> Optional[IdSequence]:
        stmt = select(IdSequence).where(
            IdSequence.prefix == prefix, IdSequence.date_str == date_str
        )
        return await self.scalar_one_or_none(stmt)

    async def list_for_prefix(self, prefix: str) -> List[IdSequence]:
        stmt = (
            select(IdSequence)
            .where(IdSequence.prefix == prefix)
            .order_by(IdSequence.date_str.desc())
        )
        return list(await self.scalars(stmt))
