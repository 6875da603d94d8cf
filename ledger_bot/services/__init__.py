"""Business logic services."""

from ledger_bot.services.user_service import UserService
from ledger_bot.services.ledger_service import LedgerService
from ledger_bot.services.ledger_store import LedgerStore
from ledger_bot.services.entry_parser import EntryParser
from ledger_bot.services.synchronizer import LedgerSynchronizer

__all__ = [
    "UserService",
    "LedgerService",
    "LedgerStore",
    "EntryParser",
    "LedgerSynchronizer",
]
