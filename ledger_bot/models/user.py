"""
User model.

Users belong to the identity store. The ledger pipeline only
looks them up by chat username and references them as ledger
owners; it never changes them.
"""

from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_bot.models.base import Base
from ledger_bot.utils import utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    display_name: Mapped[str] = mapped_column(
        String(100), nullable=False, default=""
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    # A user can own many ledgers
    ledgers: Mapped[list["Ledger"]] = relationship(back_populates="owner")

    def __repr__(self) -> str:
        return f"<User {self.username}>"
