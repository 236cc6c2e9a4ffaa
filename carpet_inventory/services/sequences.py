"""
Sequential identifier allocation.

Identifiers look like ``PRO-240115-007`` (daily scope) or ``CUST-global-012``.
Every allocation is one atomic upsert-increment against ``id_sequences``
inside a savepoint of the caller's transaction, so concurrent request handlers
never observe the same counter value. When the store misbehaves the allocator
degrades to ``PRO_<base36 millis>_<random>`` instead of failing the request.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carpet_inventory.core.errors import TransientStoreError
from carpet_inventory.db.models.sequences import IdSequence
from carpet_inventory.repositories.sequences import IdSequenceRepository
from carpet_inventory.services.base import BaseService

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"
SEQUENCE_WIDTH = 3

_BASE36 = string.digits + string.ascii_lowercase


def date_scope(now: Optional[datetime] = None) -> str:
    """YYMMDD scope for the given instant (UTC)."""
    return (now or datetime.now(tz=timezone.utc)).strftime("%y%m%d")


def format_sequence_id(prefix: str, scope: str, value: int) -> str:
    """Render PREFIX-SCOPE-NNN; values past 999 keep all their digits."""
    return f"{prefix}-{scope}-{value:0{SEQUENCE_WIDTH}d}"


def _to_base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if value == 0:
            break
    return "".join(reversed(digits))


def fallback_id(prefix: str) -> str:
    """Timestamp plus random suffix used when the counter store is unavailable."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{prefix}_{stamp}_{suffix}"


class SequenceAllocator(BaseService):
    """Issues the next identifier for a (prefix, scope) counter."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = IdSequenceRepository(session)

    async def _increment(self, prefix: str, scope: str) -> int:
        try:
            async with self.session.begin_nested():
                return await self.repo.increment(prefix, scope)
        except SQLAlchemyError as exc:
            raise TransientStoreError(
                f"Sequence store unavailable for {prefix}/{scope}", details={"cause": str(exc)}
            ) from exc

    # PUBLIC_INTERFACE
    async def next_id(self, prefix: str, scoped: bool = True) -> str:
        """
        Return the next identifier for prefix.

        Parameters:
            prefix: Identifier prefix such as PRO, ORD or QR.
            scoped: True for a per-day counter (YYMMDD), False for the global one.
        Returns:
            PREFIX-SCOPE-NNN, or PREFIX_<stamp>_<random> if the store failed.
        """
        scope = date_scope() if scoped else GLOBAL_SCOPE
        try:
            value = await self._increment(prefix, scope)
        except TransientStoreError as exc:
            logger.warning("Falling back to random id for prefix=%s: %s", prefix, exc.details)
            return fallback_id(prefix)
        return format_sequence_id(prefix, scope, value)

    async def product_id(self) -> str:
        return await self.next_id("PRO")

    async def qr_code(self) -> str:
        return await self.next_id("QR")

    async def unit_id(self) -> str:
        return await self.next_id("IPD")

    async def customer_id(self) -> str:
        return await self.next_id("CUST", scoped=False)

    async def order_id(self) -> str:
        return await self.next_id("ORD")

    async def order_item_id(self) -> str:
        return await self.next_id("ORDITEM")

    async def order_number(self) -> str:
        return await self.next_id("ON")

    async def material_id(self) -> str:
        return await self.next_id("MAT")

    async def supplier_id(self) -> str:
        return await self.next_id("SUP")

    async def purchase_order_id(self) -> str:
        return await self.next_id("PO")

    async def purchase_order_item_id(self) -> str:
        return await self.next_id("POITEM")

    async def movement_id(self) -> str:
        return await self.next_id("SM")

    async def batch_id(self) -> str:
        return await self.next_id("BATCH")

    async def consumption_id(self) -> str:
        return await self.next_id("MC")

    # PUBLIC_INTERFACE
    async def sequence_info(self, prefix: str, date_str: Optional[str] = None) -> Optional[IdSequence]:
        """Current counter row for prefix and scope (today when omitted)."""
        return await self.repo.get(prefix, date_str or date_scope())

    # PUBLIC_INTERFACE
    async def sequences_for_prefix(self, prefix: str) -> List[IdSequence]:
        """All counters for prefix, newest scope first."""
        return await self.repo.list_for_prefix(prefix)
