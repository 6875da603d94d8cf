"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from ledger_bot.models.base import Base
from ledger_bot.models.user import User
from ledger_bot.models.ledger import Ledger

__all__ = [
    "Base",
    "User",
    "Ledger",
]
