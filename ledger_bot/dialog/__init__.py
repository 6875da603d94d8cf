"""Per-user conversation handling."""

from ledger_bot.dialog.events import ChatEvent, EventKind, Transport
from ledger_bot.dialog.state import ConversationState, ConversationTable, DialogStep
from ledger_bot.dialog.machine import DialogMachine

__all__ = [
    "ChatEvent",
    "EventKind",
    "Transport",
    "ConversationState",
    "ConversationTable",
    "DialogStep",
    "DialogMachine",
]
