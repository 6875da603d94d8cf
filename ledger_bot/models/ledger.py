"""
Ledger model.

A ledger is a named book of entries. The entries themselves live
in an external spreadsheet; this table only records who owns the
ledger and which spreadsheet backs it (sheet_ref).

A ledger without a sheet_ref is a creation in progress. The
creation saga either attaches the ref or deletes the row, and
listing queries never return incomplete ledgers.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_bot.models.base import Base
from ledger_bot.utils import new_token, utcnow


class Ledger(Base):
    __tablename__ = "ledgers"

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, default=new_token
    )
    title: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    description: Mapped[str] = mapped_column(
        Text, nullable=False, default=""
    )
    created_by: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    sheet_ref: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )

    owner: Mapped["User"] = relationship(back_populates="ledgers")

    @property
    def is_complete(self) -> bool:
        return bool(self.sheet_ref)

    def __repr__(self) -> str:
        return f"<Ledger {self.title!r} sheet={self.sheet_ref or '-'}>"
