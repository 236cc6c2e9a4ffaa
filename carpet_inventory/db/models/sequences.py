from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from carpet_inventory.db.base import Base, TimestampMixin


class IdSequence(TimestampMixin, Base):
    """Last issued counter value per (prefix, scope); scope is YYMMDD or 'global'."""
    __tablename__ = "id_sequences"

    prefix: Mapped[str] = mapped_column(String(16), primary_key=True)
    date_str: Mapped[str] = mapped_column(String(16), primary_key=True)
    last_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
